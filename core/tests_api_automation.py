from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase

from core.google_calendar import BusyInterval, CalendarError, EventRef
from core.models import MentorDenial, Session, SessionRating, SkillPopularity, UserProfile
from core.schema import PUBLIC_PATHS


def fake_event(access_token, **kwargs):
    return EventRef(
        id=f"evt-{access_token}",
        link=f"https://calendar.example.com/{access_token}",
        conference_link="https://meet.example.com/abc-defg-hij",
    )


class ApiAutomationTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        User = get_user_model()

        cls.student_password = "StudentPass123!"
        cls.admin_user = User.objects.create_user(
            username="admin_automation",
            email="admin.automation@example.com",
            password="AdminPass123!",
            is_staff=True,
            is_superuser=True,
        )
        cls.student_user = User.objects.create_user(
            username="student_automation",
            email="student.automation@example.com",
            password=cls.student_password,
        )
        cls.mentor_user = User.objects.create_user(
            username="mentor_automation",
            email="mentor.automation@example.com",
            password="MentorPass123!",
        )
        cls.other_user = User.objects.create_user(
            username="other_automation",
            email="other.automation@example.com",
            password="OtherPass123!",
        )

        cls.student = UserProfile.objects.create(
            user=cls.student_user,
            name="Student Automation",
            email=cls.student_user.email,
            role="student",
            skills_wanted=["Excel"],
            availability={"days": ["Mon"], "times": ["09:00-10:00"]},
        )
        cls.mentor = UserProfile.objects.create(
            user=cls.mentor_user,
            name="Mentor Automation",
            email=cls.mentor_user.email,
            role="mentor",
            skills_offered=["excel", "Python"],
            reputation_score=Decimal("4.00"),
            rating_count=2,
            total_rating_points=8,
        )
        cls.other = UserProfile.objects.create(
            user=cls.other_user,
            name="Other Automation",
            email=cls.other_user.email,
            role="mentor",
            skills_offered=["Guitar"],
        )

        start = timezone.now() - timedelta(days=1)
        cls.session = Session.objects.create(
            organizer=cls.student,
            participant=cls.mentor,
            summary="Excel pivot tables",
            skill_topic="Excel",
            start_time=start,
            end_time=start + timedelta(hours=1),
        )
        cls.foreign_session = Session.objects.create(
            organizer=cls.other,
            participant=cls.mentor,
            summary="Guitar chords",
            skill_topic="Guitar",
            start_time=start,
            end_time=start + timedelta(hours=1),
        )

    def setUp(self):
        self.client.defaults["HTTP_HOST"] = "testserver"

    def _authenticate(self, user):
        self.client.force_authenticate(user=user)

    def _book_payload(self, **overrides):
        payload = {
            "participant_uid": self.mentor.uid,
            "organizer_access_token": "organizer",
            "participant_access_token": "participant",
            "summary": "Excel deep dive",
            "start_time": "2026-10-26T09:00:00+05:30",
            "end_time": "2026-10-26T10:00:00+05:30",
            "skill_topic": "Excel",
            "session_type": "learning",
        }
        payload.update(overrides)
        return payload

    # Auth

    def test_login_returns_tokens_with_uid_and_role(self):
        response = self.client.post(
            "/api/login/",
            {"email": self.student_user.email, "password": self.student_password},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("access", response.data)
        self.assertEqual(response.data["uid"], self.student.uid)
        self.assertEqual(response.data["role"], "student")

    def test_login_rejects_wrong_password(self):
        response = self.client.post(
            "/api/login/",
            {"email": self.student_user.email, "password": "wrong-password"},
            format="json",
        )
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.data["success"])

    def test_register_creates_profile_and_deduplicates_skills(self):
        response = self.client.post(
            "/api/auth/register/",
            {
                "name": "New Learner",
                "email": "New.Learner@Example.com",
                "password": "LearnerPass123!",
                "skills_offered": ["Excel", "excel", " Cooking "],
                "availability": {"days": ["Wed", "Mon"], "times": ["09:00-10:00", "10:00-11:00"]},
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["success"])
        profile = UserProfile.objects.get(email="new.learner@example.com")
        self.assertEqual(profile.skills_offered, ["Excel", "Cooking"])
        self.assertEqual(profile.availability["days"], ["Mon", "Wed"])
        self.assertEqual(response.data["data"]["user"]["uid"], profile.uid)
        self.assertIn("access", response.data["data"]["tokens"])
        self.assertEqual(SkillPopularity.objects.get(key="cooking").count, 1)

    def test_register_rejects_overlapping_times_with_conflict(self):
        response = self.client.post(
            "/api/auth/register/",
            {
                "name": "Overlap",
                "email": "overlap@example.com",
                "password": "OverlapPass123!",
                "availability": {"days": ["Mon"], "times": ["09:00-12:00", "11:00-13:00"]},
            },
            format="json",
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "overlapping_time_ranges")
        self.assertFalse(UserProfile.objects.filter(email="overlap@example.com").exists())

    def test_register_rejects_duplicate_email(self):
        response = self.client.post(
            "/api/auth/register/",
            {"name": "Dup", "email": self.student_user.email, "password": "DupPass123!"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])
        self.assertIn("email", response.data["details"])

    def test_protected_endpoint_requires_authentication(self):
        response = self.client.get("/api/matches/")
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.data["success"])

    # Profile

    def test_profile_me_hides_calendar_token(self):
        self._authenticate(self.student_user)
        response = self.client.get("/api/profile/me/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["uid"], self.student.uid)
        self.assertNotIn("calendar_access_token", response.data["data"])

    def test_profile_update_validates_fields(self):
        self._authenticate(self.student_user)

        empty = self.client.post("/api/profile/update/", {}, format="json")
        self.assertEqual(empty.status_code, 400)

        too_many = self.client.post(
            "/api/profile/update/",
            {"skills_wanted": [f"Skill {index}" for index in range(11)]},
            format="json",
        )
        self.assertEqual(too_many.status_code, 400)

        bad_range = self.client.post(
            "/api/profile/update/",
            {"availability": {"days": ["Mon"], "times": ["9:00-10:00"]}},
            format="json",
        )
        self.assertEqual(bad_range.status_code, 400)
        self.assertEqual(bad_range.data["code"], "invalid_time_range")

        ok = self.client.post(
            "/api/profile/update/",
            {"name": "Renamed Student", "skills_wanted": ["Python"]},
            format="json",
        )
        self.assertEqual(ok.status_code, 200)
        self.student.refresh_from_db()
        self.assertEqual(self.student.name, "Renamed Student")
        self.assertEqual(self.student.skills_wanted, ["Python"])

    def test_public_profile_excludes_private_fields(self):
        self._authenticate(self.student_user)
        response = self.client.get(f"/api/profile/{self.mentor.uid}/")
        self.assertEqual(response.status_code, 200)
        self.assertNotIn("email", response.data["data"])
        self.assertNotIn("calendar_access_token", response.data["data"])

    def test_profile_delete_is_limited_to_self_or_admin(self):
        self._authenticate(self.student_user)
        forbidden = self.client.delete(f"/api/profile/{self.other.uid}/")
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(forbidden.data["code"], "not_authorized")

        self._authenticate(self.admin_user)
        allowed = self.client.delete(f"/api/profile/{self.other.uid}/")
        self.assertEqual(allowed.status_code, 200)
        self.assertFalse(UserProfile.objects.filter(pk=self.other.pk).exists())
        self.assertFalse(Session.objects.filter(pk=self.foreign_session.pk).exists())

    def test_admin_stats_requires_admin(self):
        self._authenticate(self.student_user)
        self.assertEqual(self.client.get("/api/profile/admin/stats/").status_code, 403)

        self._authenticate(self.admin_user)
        response = self.client.get("/api/profile/admin/stats/")
        self.assertEqual(response.status_code, 200)
        data = response.data["data"]
        self.assertEqual(data["total_users"], 3)
        self.assertEqual(data["users_by_role"]["mentor"], 2)
        self.assertIn("excel", [item["name"].lower() for item in data["popular_skills"]])

    # Matching

    def test_matches_rank_mentors_and_respect_denials(self):
        self._authenticate(self.student_user)

        response = self.client.get("/api/matches/")
        self.assertEqual(response.status_code, 200)
        matches = response.data["data"]["matches"]
        self.assertEqual(matches[0]["uid"], self.mentor.uid)
        self.assertEqual(matches[0]["match_score"], 7.4)

        denied = self.client.post("/api/matches/deny/", {"mentor_uid": self.mentor.uid}, format="json")
        self.assertEqual(denied.status_code, 200)
        self.assertTrue(MentorDenial.objects.filter(learner=self.student, mentor=self.mentor).exists())

        after = self.client.get("/api/matches/")
        self.assertNotIn(self.mentor.uid, [item["uid"] for item in after.data["data"]["matches"]])

    def test_matches_limit_is_bounded(self):
        self._authenticate(self.student_user)
        self.assertEqual(self.client.get("/api/matches/?limit=0").status_code, 400)
        self.assertEqual(self.client.get("/api/matches/?limit=101").status_code, 400)
        self.assertEqual(self.client.get("/api/matches/?limit=1").status_code, 200)

    def test_mentor_profile_not_found_uses_error_envelope(self):
        self._authenticate(self.student_user)
        response = self.client.get("/api/matches/mentors/missing/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(
            response.data,
            {"success": False, "error": "Mentor not found", "code": "not_found", "retryable": False},
        )

    # Calendar

    @patch("core.google_calendar.query_busy")
    def test_calendar_sync_stores_slots(self, mock_query_busy):
        mock_query_busy.return_value = [
            BusyInterval(timezone.now() + timedelta(days=30), timezone.now() + timedelta(days=30, hours=1))
        ]
        self._authenticate(self.student_user)

        response = self.client.post("/api/profile/calendar/sync/", {"access_token": "token"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["busy_times_count"], 1)
        self.assertEqual(len(response.data["data"]["available_slots"]), 2)
        self.student.refresh_from_db()
        self.assertTrue(self.student.calendar_synced)

    @patch("core.google_calendar.query_busy", side_effect=CalendarError("timed out"))
    def test_calendar_sync_failure_is_retryable_503(self, _mock_query_busy):
        self._authenticate(self.student_user)
        response = self.client.post("/api/profile/calendar/sync/", {"access_token": "token"}, format="json")
        self.assertEqual(response.status_code, 503)
        self.assertTrue(response.data["retryable"])

    @patch("core.google_calendar.query_busy", return_value=[])
    def test_calendar_connect_token_is_used_by_sync(self, mock_query_busy):
        self._authenticate(self.student_user)
        connect = self.client.post("/api/profile/calendar/connect/", {"access_token": "stored"}, format="json")
        self.assertEqual(connect.status_code, 200)

        response = self.client.post("/api/profile/calendar/sync/", {}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(mock_query_busy.call_args.args[0], "stored")

    # Booking

    @patch("core.google_calendar.create_event", side_effect=fake_event)
    def test_two_way_booking_creates_session(self, mock_create_event):
        self._authenticate(self.student_user)

        response = self.client.post("/api/profile/session/book-two-way/", self._book_payload(), format="json")

        self.assertEqual(response.status_code, 201)
        data = response.data["data"]
        session = Session.objects.get(pk=data["session_id"])
        self.assertEqual(session.organizer, self.student)
        self.assertEqual(session.organizer_event_id, "evt-organizer")
        self.assertEqual(session.participant_event_id, "evt-participant")
        self.assertEqual(mock_create_event.call_count, 2)
        self.assertEqual(mock_create_event.call_args_list[0].kwargs["attendee_email"], self.mentor.email)

    @patch("core.google_calendar.delete_event")
    @patch("core.google_calendar.create_event")
    def test_partial_booking_failure_returns_502_and_rolls_back(self, mock_create_event, mock_delete_event):
        def create(access_token, **kwargs):
            if access_token == "participant":
                raise CalendarError("Insufficient permission")
            return fake_event(access_token)

        mock_create_event.side_effect = create
        self._authenticate(self.student_user)
        before = Session.objects.count()

        response = self.client.post("/api/profile/session/book-two-way/", self._book_payload(), format="json")

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.data["code"], "partial_booking_failure")
        self.assertTrue(response.data["retryable"])
        self.assertEqual(Session.objects.count(), before)
        mock_delete_event.assert_called_once_with("organizer", "evt-organizer")

    @patch("core.google_calendar.create_event", side_effect=fake_event)
    def test_booking_validation_errors(self, mock_create_event):
        self._authenticate(self.student_user)

        missing = self.client.post(
            "/api/profile/session/book-two-way/", self._book_payload(summary=""), format="json"
        )
        self.assertEqual(missing.status_code, 400)
        self.assertIn("summary", missing.data["error"])

        inverted = self.client.post(
            "/api/profile/session/book-two-way/",
            self._book_payload(end_time="2026-10-26T08:00:00+05:30"),
            format="json",
        )
        self.assertEqual(inverted.status_code, 400)

        unknown = self.client.post(
            "/api/profile/session/book-two-way/", self._book_payload(participant_uid="missing"), format="json"
        )
        self.assertEqual(unknown.status_code, 404)
        mock_create_event.assert_not_called()

    # Ratings and sessions

    def test_rate_session_updates_reputation_once(self):
        self._authenticate(self.student_user)
        payload = {"session_id": self.session.id, "mentor_uid": self.mentor.uid, "rating": 5}

        response = self.client.post("/api/profile/rate-session/", payload, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["new_reputation_score"], 4.33)
        self.assertEqual(response.data["data"]["total_ratings"], 3)

        duplicate = self.client.post("/api/profile/rate-session/", payload, format="json")
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(duplicate.data["code"], "duplicate_rating")
        self.mentor.refresh_from_db()
        self.assertEqual(self.mentor.reputation_score, Decimal("4.33"))
        self.assertEqual(SessionRating.objects.filter(session=self.session).count(), 1)

    def test_rate_session_rejects_non_participant_and_bad_values(self):
        self._authenticate(self.other_user)
        outsider = self.client.post(
            "/api/profile/rate-session/",
            {"session_id": self.session.id, "mentor_uid": self.mentor.uid, "rating": 5},
            format="json",
        )
        self.assertEqual(outsider.status_code, 403)

        self._authenticate(self.student_user)
        for value in [0, 6, "5", True, 4.5]:
            with self.subTest(value=value):
                response = self.client.post(
                    "/api/profile/rate-session/",
                    {"session_id": self.session.id, "mentor_uid": self.mentor.uid, "rating": value},
                    format="json",
                )
                self.assertEqual(response.status_code, 400)

    def test_rate_session_accepts_integral_json_number(self):
        self._authenticate(self.student_user)
        response = self.client.post(
            "/api/profile/rate-session/",
            {"session_id": self.session.id, "mentor_uid": self.mentor.uid, "rating": 5.0},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"]["rating"], 5)
        self.assertEqual(response.data["data"]["new_reputation_score"], 4.33)

    def test_sessions_list_only_own_sessions(self):
        self._authenticate(self.student_user)
        response = self.client.get("/api/sessions/")
        self.assertEqual(response.status_code, 200)
        ids = [item["id"] for item in response.data]
        self.assertEqual(ids, [self.session.id])

        foreign = self.client.get(f"/api/sessions/{self.foreign_session.id}/")
        self.assertEqual(foreign.status_code, 404)

        filtered = self.client.get("/api/sessions/?status=completed")
        self.assertEqual(filtered.data, [])

    # Schema

    def test_schema_lists_public_paths_without_security(self):
        response = self.client.get("/api/schema/")
        self.assertEqual(response.status_code, 200)
        paths = response.data["paths"]
        for path in PUBLIC_PATHS & set(paths):
            for method, operation in paths[path].items():
                self.assertNotIn("security", operation, f"{method.upper()} {path}")
        self.assertEqual(
            paths["/api/profile/session/book-two-way/"]["post"]["security"], [{"HTTPBearer": []}]
        )
