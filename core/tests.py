import io
import json
import urllib.error
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

from django.db import IntegrityError
from django.test import TestCase, override_settings
from django.utils import timezone

from core.availability import generate_available_slots, sync_calendar_availability
from core.booking import BookingRequest, book_two_way_session
from core.errors import (
    CalendarBookingFailed,
    CalendarUnavailable,
    Conflict,
    DuplicateRating,
    ExternalServiceFailure,
    InvalidInput,
    InvalidTimeRange,
    NotAuthorized,
    NotFound,
    OverlappingTimeRanges,
    PartialBookingFailure,
)
from core import google_calendar
from core.google_calendar import BusyInterval, CalendarError, EventRef
from core.matching_logic import find_matches, get_mentor_profile, rank_mentors, score_mentor, store_denial
from core.models import MentorDenial, Session, SessionRating, SkillPopularity, UserProfile
from core.ratings import running_average, submit_rating
from core.stores import Availability, UserProfileData, default_stores, profile_from_model
from core.time_ranges import (
    all_pairwise_non_overlapping,
    format_range,
    parse_range,
    ranges_overlap,
    validate_declared_times,
)


KOLKATA = ZoneInfo("Asia/Kolkata")
# A Wednesday; the seven-day window runs Wed 21 to Tue 27 October 2026.
WEDNESDAY_NOON = datetime(2026, 10, 21, 12, 0, tzinfo=KOLKATA)


class FakeCalendar:
    def __init__(self, *, busy=None, fail_busy=False, fail_create_for=(), fail_delete=False):
        self.busy = list(busy or [])
        self.fail_busy = fail_busy
        self.fail_create_for = set(fail_create_for)
        self.fail_delete = fail_delete
        self.created = []
        self.deleted = []

    def query_busy(self, access_token, time_min, time_max, time_zone=None):
        if self.fail_busy:
            raise CalendarError("Calendar unavailable")
        return list(self.busy)

    def create_event(self, access_token, *, summary, start_time, end_time, attendee_email, description="", time_zone=None):
        if access_token in self.fail_create_for:
            raise CalendarError("Insufficient permission")
        number = len(self.created) + 1
        event = EventRef(
            id=f"evt-{number}",
            link=f"https://calendar.example.com/event/{number}",
            conference_link="https://meet.example.com/abc-defg-hij",
        )
        self.created.append({"token": access_token, "attendee": attendee_email, "event": event})
        return event

    def delete_event(self, access_token, event_id):
        if self.fail_delete:
            raise CalendarError("Delete failed")
        self.deleted.append((access_token, event_id))


def make_profile(name, **fields):
    email = fields.pop("email", f"{name.lower().replace(' ', '.')}@example.com")
    return UserProfile.objects.create(name=name, email=email, **fields)


def profile_data(uid, **fields):
    availability = fields.pop("availability", None)
    return UserProfileData(
        uid=uid,
        name=uid.title(),
        availability=Availability(**availability) if availability else Availability(),
        **fields,
    )


class TimeRangeTests(TestCase):
    def test_parse_and_format_round_trip(self):
        self.assertEqual(parse_range("09:00-12:30"), (540, 750))
        for value in ["00:00-00:01", "00:00-23:59", "23:00-23:59", "12:30-13:45", "09:05-09:10", "19:59-20:00"]:
            with self.subTest(value=value):
                self.assertEqual(format_range(parse_range(value)), value)

    def test_rejects_malformed_and_inverted_ranges(self):
        for value in ["9:00-12:00", "24:00-25:00", "12:00-09:00", "10:00-10:00", "", "09:00 - 10:00", None]:
            with self.subTest(value=value):
                with self.assertRaises(InvalidTimeRange):
                    parse_range(value)

    def test_touching_ranges_do_not_overlap(self):
        self.assertFalse(ranges_overlap("09:00-10:00", "10:00-11:00"))
        self.assertTrue(ranges_overlap("09:00-10:30", "10:00-11:00"))
        self.assertTrue(ranges_overlap("10:15-10:45", "10:00-11:00"))

    def test_overlap_is_symmetric(self):
        pairs = [("08:00-09:00", "08:30-10:00"), ("12:00-13:00", "13:00-14:00"), ("06:00-23:00", "07:00-08:00")]
        for a, b in pairs:
            with self.subTest(a=a, b=b):
                self.assertEqual(ranges_overlap(a, b), ranges_overlap(b, a))

    def test_declared_times_reject_any_overlap(self):
        self.assertEqual(
            validate_declared_times(["09:00-10:00", "10:00-11:00"]),
            ["09:00-10:00", "10:00-11:00"],
        )
        with self.assertRaises(OverlappingTimeRanges):
            validate_declared_times(["09:00-12:00", "13:00-14:00", "11:00-13:00"])
        self.assertFalse(all_pairwise_non_overlapping(["09:00-12:00", "11:00-13:00"]))

    def test_overlapping_declared_times_is_a_conflict(self):
        with self.assertRaises(Conflict):
            validate_declared_times(["09:00-12:00", "11:00-13:00"])


class MatchScoringTests(TestCase):
    def test_skill_match_is_case_insensitive(self):
        learner = profile_data("learner", skills_wanted=["Excel"])
        mentor = profile_data("mentor", skills_offered=["excel"])

        scored = score_mentor(learner, mentor)

        self.assertEqual(scored.skill_match_points, 5)
        self.assertEqual(scored.matched_skills, ["Excel"])
        self.assertEqual(scored.score, 5.0)

    def test_reputation_contributes_without_skill_match(self):
        learner = profile_data("learner", skills_wanted=["Guitar"])
        mentor = profile_data("mentor", skills_offered=["Excel"], reputation_score=4.0)

        scored = score_mentor(learner, mentor)

        self.assertEqual(scored.skill_match_points, 0)
        self.assertEqual(scored.reputation_contribution, 2.4)
        self.assertEqual(scored.score, 2.4)

    def test_declared_availability_overlap_adds_points(self):
        learner = profile_data(
            "learner",
            skills_wanted=["Python"],
            availability={"days": ["Mon", "Wed"], "times": ["09:00-11:00"]},
        )
        mentor = profile_data(
            "mentor",
            skills_offered=["Python"],
            reputation_score=5.0,
            availability={"days": ["Wed"], "times": ["10:30-12:00"]},
        )

        scored = score_mentor(learner, mentor)

        self.assertEqual(scored.availability_points, 2)
        self.assertEqual(scored.score, 10.0)

    def test_touching_declared_ranges_do_not_count_as_availability(self):
        learner = profile_data("learner", availability={"days": ["Mon"], "times": ["09:00-10:00"]})
        mentor = profile_data(
            "mentor",
            skills_offered=["Python"],
            availability={"days": ["Mon"], "times": ["10:00-11:00"]},
        )
        self.assertEqual(score_mentor(learner, mentor).availability_points, 0)

    def test_synced_calendars_compare_slot_labels(self):
        slot = "Mon, 26/10/2026, 09:00 am"
        learner = profile_data("learner", calendar_synced=True, available_slots=[slot])
        mentor = profile_data(
            "mentor",
            skills_offered=["Python"],
            calendar_synced=True,
            available_slots=["Mon, 26/10/2026, 09:30 am", slot],
        )
        self.assertEqual(score_mentor(learner, mentor).availability_points, 2)

    def test_rank_excludes_self_denied_unskilled_and_zero_scores(self):
        learner = profile_data("learner", skills_wanted=["Excel"], skills_offered=["Excel"])
        candidates = [
            learner,
            profile_data("denied", skills_offered=["Excel"]),
            profile_data("no-skills", reputation_score=5.0),
            profile_data("zero", skills_offered=["Cooking"]),
            profile_data("match", skills_offered=["excel"]),
        ]

        ranked = rank_mentors(learner, candidates, exclude_uids={"denied"})

        self.assertEqual([item.mentor.uid for item in ranked], ["match"])
        self.assertTrue(all(item.score > 0 for item in ranked))

    def test_rank_is_stable_for_ties_and_respects_limit(self):
        learner = profile_data("learner", skills_wanted=["Excel"])
        candidates = [profile_data(f"mentor-{index}", skills_offered=["Excel"]) for index in range(5)]
        candidates.append(profile_data("best", skills_offered=["Excel"], reputation_score=5.0))

        ranked = rank_mentors(learner, iter(candidates), limit=3)

        self.assertEqual([item.mentor.uid for item in ranked], ["best", "mentor-0", "mentor-1"])
        scores = [item.score for item in ranked]
        self.assertEqual(scores, sorted(scores, reverse=True))


class MatchingServiceTests(TestCase):
    def setUp(self):
        self.stores = default_stores()
        self.learner = make_profile("Learner", skills_wanted=["Excel"])
        self.mentor = make_profile("Mentor One", role="mentor", skills_offered=["Excel"])
        self.other = make_profile("Mentor Two", role="mentor", skills_offered=["excel"])

    def test_denied_mentor_never_returned(self):
        store_denial(
            self.learner.uid,
            self.mentor.uid,
            profiles=self.stores.profiles,
            denials=self.stores.denials,
        )

        matches = find_matches(self.learner.uid, profiles=self.stores.profiles, denials=self.stores.denials)

        self.assertEqual([item.mentor.uid for item in matches], [self.other.uid])

    def test_denial_is_idempotent_per_pair(self):
        for _ in range(2):
            store_denial(
                self.learner.uid,
                self.mentor.uid,
                profiles=self.stores.profiles,
                denials=self.stores.denials,
            )
        self.assertEqual(MentorDenial.objects.filter(learner=self.learner).count(), 1)

    def test_denial_rejects_self_and_unknown_mentor(self):
        with self.assertRaises(InvalidInput):
            store_denial(
                self.learner.uid, self.learner.uid, profiles=self.stores.profiles, denials=self.stores.denials
            )
        with self.assertRaises(NotFound):
            store_denial(self.learner.uid, "missing", profiles=self.stores.profiles, denials=self.stores.denials)

    def test_unknown_learner_is_not_found(self):
        with self.assertRaises(NotFound):
            find_matches("missing", profiles=self.stores.profiles, denials=self.stores.denials)

    def test_malformed_stored_availability_is_default_filled(self):
        self.mentor.availability = {"days": ["Mon", "Funday"], "times": ["09:00-10:00", "bad"]}
        self.mentor.save()
        self.other.availability = "not-a-dict"
        self.other.save()

        self.assertEqual(
            profile_from_model(self.mentor).availability,
            Availability(days=["Mon"], times=["09:00-10:00"]),
        )
        self.assertEqual(profile_from_model(self.other).availability, Availability())

    def test_synced_mentor_without_slots_shows_empty_availability(self):
        self.mentor.availability = {"days": ["Mon"], "times": ["09:00-10:00"]}
        self.mentor.calendar_synced = True
        self.mentor.available_slots = []
        self.mentor.save()

        synced = get_mentor_profile(self.mentor.uid, profiles=self.stores.profiles)
        self.assertEqual(synced["availability"], [])

        self.mentor.calendar_synced = False
        self.mentor.save()
        declared = get_mentor_profile(self.mentor.uid, profiles=self.stores.profiles)
        self.assertEqual(declared["availability"], {"days": ["Mon"], "times": ["09:00-10:00"]})


@override_settings(SKILLSWAP_TIMEZONE="Asia/Kolkata", SKILLSWAP_SLOT_MINUTES=30, SKILLSWAP_AVAILABILITY_DAYS=7)
class AvailabilityTests(TestCase):
    def test_single_declared_range_yields_two_slots_on_next_monday(self):
        slots = generate_available_slots(
            {"days": ["Mon"], "times": ["09:00-10:00"]}, [], [], now=WEDNESDAY_NOON
        )
        self.assertEqual(slots, ["Mon, 26/10/2026, 09:00 am", "Mon, 26/10/2026, 09:30 am"])

    def test_busy_and_booked_intervals_remove_slots(self):
        monday = datetime(2026, 10, 26, tzinfo=KOLKATA)
        busy = [BusyInterval(monday + timedelta(hours=9), monday + timedelta(hours=9, minutes=15))]
        booked = [{"start": monday + timedelta(hours=10), "end": monday + timedelta(hours=11)}]

        slots = generate_available_slots(
            {"days": ["Mon"], "times": ["09:00-11:00"]}, busy, booked, now=WEDNESDAY_NOON
        )

        self.assertEqual(slots, ["Mon, 26/10/2026, 09:30 am"])

    def test_slot_touching_busy_interval_is_kept(self):
        monday = datetime(2026, 10, 26, tzinfo=KOLKATA)
        busy = [BusyInterval(monday + timedelta(hours=8), monday + timedelta(hours=9))]

        slots = generate_available_slots(
            {"days": ["Mon"], "times": ["09:00-09:30"]}, busy, [], now=WEDNESDAY_NOON
        )

        self.assertEqual(slots, ["Mon, 26/10/2026, 09:00 am"])

    def test_afternoon_slots_use_twelve_hour_labels(self):
        slots = generate_available_slots(
            {"days": ["Tue"], "times": ["12:00-12:30", "13:30-14:00"]}, [], [], now=WEDNESDAY_NOON
        )
        self.assertEqual(slots, ["Tue, 27/10/2026, 12:00 pm", "Tue, 27/10/2026, 01:30 pm"])

    def test_no_preferences_defaults_to_working_hours_every_day(self):
        slots = generate_available_slots({}, [], [], now=WEDNESDAY_NOON)

        self.assertEqual(len(slots), 7 * 22)
        self.assertEqual(slots[0], "Wed, 21/10/2026, 09:00 am")
        self.assertEqual(slots[-1], "Tue, 27/10/2026, 07:30 pm")

    def test_sync_persists_slots_and_busy_times(self):
        profile = make_profile("Synced", availability={"days": ["Mon"], "times": ["09:00-10:00"]})
        monday = datetime(2026, 10, 26, tzinfo=KOLKATA)
        calendar = FakeCalendar(busy=[BusyInterval(monday + timedelta(hours=9), monday + timedelta(hours=9, minutes=30))])
        stores = default_stores()

        result = sync_calendar_availability(
            profile.uid,
            "token",
            profiles=stores.profiles,
            sessions=stores.sessions,
            calendar=calendar,
            now=WEDNESDAY_NOON,
        )

        profile.refresh_from_db()
        self.assertEqual(result.available_slots, ["Mon, 26/10/2026, 09:30 am"])
        self.assertEqual(result.busy_times_count, 1)
        self.assertTrue(profile.calendar_synced)
        self.assertEqual(profile.available_slots, ["Mon, 26/10/2026, 09:30 am"])
        self.assertEqual(len(profile.calendar_busy_times), 1)

    def test_sync_excludes_confirmed_sessions(self):
        profile = make_profile("Booked", availability={"days": ["Mon"], "times": ["09:00-10:00"]})
        other = make_profile("Other")
        monday = datetime(2026, 10, 26, tzinfo=KOLKATA)
        Session.objects.create(
            organizer=profile,
            participant=other,
            summary="Excel",
            skill_topic="Excel",
            start_time=monday + timedelta(hours=9),
            end_time=monday + timedelta(hours=9, minutes=30),
        )
        stores = default_stores()

        result = sync_calendar_availability(
            profile.uid, "token", profiles=stores.profiles, sessions=stores.sessions,
            calendar=FakeCalendar(), now=WEDNESDAY_NOON,
        )

        self.assertEqual(result.available_slots, ["Mon, 26/10/2026, 09:30 am"])

    def test_calendar_failure_is_reported_and_profile_untouched(self):
        profile = make_profile("Unsynced")
        stores = default_stores()

        with self.assertRaises(CalendarUnavailable):
            sync_calendar_availability(
                profile.uid, "token", profiles=stores.profiles, sessions=stores.sessions,
                calendar=FakeCalendar(fail_busy=True), now=WEDNESDAY_NOON,
            )

        profile.refresh_from_db()
        self.assertFalse(profile.calendar_synced)
        self.assertEqual(profile.available_slots, [])

    def test_sync_requires_a_token(self):
        profile = make_profile("No Token")
        stores = default_stores()
        with self.assertRaises(InvalidInput):
            sync_calendar_availability(
                profile.uid, "", profiles=stores.profiles, sessions=stores.sessions, calendar=FakeCalendar()
            )


class BookingTests(TestCase):
    def setUp(self):
        self.stores = default_stores()
        self.organizer = make_profile("Organizer", email="organizer@example.com")
        self.participant = make_profile("Participant", email="participant@example.com", role="mentor")

    def _request(self, **overrides):
        fields = {
            "organizer_uid": self.organizer.uid,
            "participant_uid": self.participant.uid,
            "organizer_access_token": "organizer-token",
            "participant_access_token": "participant-token",
            "summary": "Excel basics",
            "start_time": "2026-10-26T09:00:00+05:30",
            "end_time": "2026-10-26T10:00:00+05:30",
            "skill_topic": "Excel",
        }
        fields.update(overrides)
        return BookingRequest(**fields)

    def _book(self, calendar, **overrides):
        return book_two_way_session(
            self._request(**overrides),
            profiles=self.stores.profiles,
            sessions=self.stores.sessions,
            calendar=calendar,
        )

    def test_books_both_calendars_then_persists_confirmed_session(self):
        calendar = FakeCalendar()

        result = self._book(calendar)

        session = Session.objects.get(pk=result.session.pk)
        self.assertEqual(session.status, Session.STATUS_CONFIRMED)
        self.assertEqual(session.organizer_event_id, "evt-1")
        self.assertEqual(session.participant_event_id, "evt-2")
        self.assertEqual(
            [(item["token"], item["attendee"]) for item in calendar.created],
            [("organizer-token", "participant@example.com"), ("participant-token", "organizer@example.com")],
        )
        self.assertEqual(result.as_dict()["participant"]["event_id"], "evt-2")

    def test_participant_failure_rolls_back_organizer_event(self):
        calendar = FakeCalendar(fail_create_for={"participant-token"})

        with self.assertRaises(PartialBookingFailure):
            self._book(calendar)

        self.assertFalse(Session.objects.exists())
        self.assertEqual(calendar.deleted, [("organizer-token", "evt-1")])

    def test_failed_rollback_is_logged_for_reconciliation(self):
        calendar = FakeCalendar(fail_create_for={"participant-token"}, fail_delete=True)

        with self.assertLogs("core.booking", level="ERROR") as logs:
            with self.assertRaises(ExternalServiceFailure) as ctx:
                self._book(calendar)

        self.assertNotIsInstance(ctx.exception, PartialBookingFailure)
        self.assertIn("evt-1", str(ctx.exception.detail))
        self.assertTrue(any("evt-1" in line for line in logs.output))
        self.assertFalse(Session.objects.exists())

    def test_organizer_failure_creates_nothing(self):
        calendar = FakeCalendar(fail_create_for={"organizer-token"})

        with self.assertRaises(CalendarBookingFailed):
            self._book(calendar)

        self.assertEqual(calendar.created, [])
        self.assertFalse(Session.objects.exists())

    def test_session_write_failure_deletes_both_events(self):
        calendar = FakeCalendar()

        with patch.object(self.stores.sessions, "create", side_effect=IntegrityError("write failed")):
            with self.assertRaises(IntegrityError):
                self._book(calendar)

        self.assertEqual(
            calendar.deleted,
            [("organizer-token", "evt-1"), ("participant-token", "evt-2")],
        )
        self.assertEqual(Session.objects.count(), 0)

    def test_validation_happens_before_any_calendar_call(self):
        cases = [
            {"end_time": "2026-10-26T09:00:00+05:30"},
            {"start_time": "not-a-date"},
            {"summary": ""},
            {"participant_access_token": ""},
            {"session_type": "chatting"},
            {"participant_uid": ""},
        ]
        for overrides in cases:
            with self.subTest(overrides=overrides):
                calendar = FakeCalendar()
                with self.assertRaises(InvalidInput):
                    self._book(calendar, **overrides)
                self.assertEqual(calendar.created, [])

    def test_cannot_book_with_self(self):
        with self.assertRaises(InvalidInput):
            self._book(FakeCalendar(), participant_uid=self.organizer.uid)

    def test_unknown_participant_is_not_found(self):
        calendar = FakeCalendar()
        with self.assertRaises(NotFound):
            self._book(calendar, participant_uid="missing")
        self.assertEqual(calendar.created, [])

    @override_settings(SKILLSWAP_TIMEZONE="Asia/Kolkata")
    def test_naive_timestamps_are_read_in_local_timezone(self):
        result = self._book(FakeCalendar(), start_time="2026-10-26T09:00:00", end_time="2026-10-26T09:30:00")

        start = result.session.start_time
        self.assertEqual(start.astimezone(KOLKATA).hour, 9)
        self.assertEqual(start.astimezone(ZoneInfo("UTC")).hour, 3)


class RatingTests(TestCase):
    def setUp(self):
        self.stores = default_stores()
        self.student = make_profile("Student")
        self.mentor = make_profile(
            "Mentor",
            role="mentor",
            reputation_score=Decimal("4.00"),
            rating_count=2,
            total_rating_points=8,
        )
        self.outsider = make_profile("Outsider")
        start = timezone.now() - timedelta(days=1)
        self.session = Session.objects.create(
            organizer=self.student,
            participant=self.mentor,
            summary="Excel",
            skill_topic="Excel",
            start_time=start,
            end_time=start + timedelta(hours=1),
        )

    def _rate(self, rating=5, rater=None, mentor=None, session_id=None):
        return submit_rating(
            rater_uid=(rater or self.student).uid,
            session_id=self.session.id if session_id is None else session_id,
            mentor_uid=(mentor or self.mentor).uid,
            rating=rating,
            profiles=self.stores.profiles,
            sessions=self.stores.sessions,
            ratings=self.stores.ratings,
        )

    def test_running_average_rounds_half_up(self):
        self.assertEqual(running_average(Decimal("4.00"), 2, 5), Decimal("4.33"))
        self.assertEqual(running_average(Decimal("4.01"), 1, 5), Decimal("4.51"))
        self.assertEqual(running_average(0, 0, 3), Decimal("3.00"))

    def test_rating_updates_reputation(self):
        result = self._rate(5)

        self.mentor.refresh_from_db()
        self.assertEqual(self.mentor.reputation_score, Decimal("4.33"))
        self.assertEqual(self.mentor.rating_count, 3)
        self.assertEqual(self.mentor.total_rating_points, 13)
        self.assertEqual(result.new_reputation_score, 4.33)
        self.assertEqual(result.total_ratings, 3)

    def test_duplicate_rating_is_conflict_and_changes_nothing(self):
        self._rate(5)

        with self.assertRaises(DuplicateRating):
            self._rate(1)

        self.mentor.refresh_from_db()
        self.assertEqual(self.mentor.reputation_score, Decimal("4.33"))
        self.assertEqual(self.mentor.rating_count, 3)
        self.assertEqual(SessionRating.objects.count(), 1)

    def test_concurrent_duplicate_hits_constraint_and_changes_nothing(self):
        self._rate(5)

        # The second submission passes both lookups, as a concurrent request would.
        with patch.object(self.stores.ratings, "find_by_session", return_value=None):
            with self.assertRaises(DuplicateRating):
                self._rate(1)

        self.mentor.refresh_from_db()
        self.assertEqual(self.mentor.reputation_score, Decimal("4.33"))
        self.assertEqual(self.mentor.rating_count, 3)
        self.assertEqual(SessionRating.objects.count(), 1)

    def test_integral_float_rating_is_accepted(self):
        result = self._rate(5.0)

        self.assertEqual(result.rating, 5)
        self.assertIsInstance(result.rating, int)
        self.assertEqual(result.new_reputation_score, 4.33)

    def test_only_the_other_participant_may_rate(self):
        with self.assertRaises(NotAuthorized):
            self._rate(rater=self.outsider)
        with self.assertRaises(NotAuthorized):
            self._rate(rater=self.mentor)
        with self.assertRaises(NotAuthorized):
            self._rate(mentor=self.outsider)
        self.assertFalse(SessionRating.objects.exists())

    def test_rating_must_be_whole_number_in_range(self):
        for value in [0, 6, 4.5, "4", True, None]:
            with self.subTest(value=value):
                with self.assertRaises(InvalidInput):
                    self._rate(value)
        self.mentor.refresh_from_db()
        self.assertEqual(self.mentor.rating_count, 2)

    def test_unknown_session_is_not_found(self):
        with self.assertRaises(NotFound):
            self._rate(session_id=999999)
        with self.assertRaises(NotFound):
            self._rate(session_id="abc")

    def test_cancelled_session_cannot_be_rated(self):
        self.session.status = Session.STATUS_CANCELLED
        self.session.save()
        with self.assertRaises(Conflict):
            self._rate(4)

    def test_session_completes_once_both_participants_are_rated(self):
        first = self._rate(4)
        self.assertEqual(first.session_status, Session.STATUS_CONFIRMED)

        second = self._rate(5, rater=self.mentor, mentor=self.student)

        self.session.refresh_from_db()
        self.assertEqual(second.session_status, Session.STATUS_COMPLETED)
        self.assertEqual(self.session.status, Session.STATUS_COMPLETED)


class SkillPopularityTests(TestCase):
    def _count(self, key):
        return SkillPopularity.objects.filter(key=key).values_list("count", flat=True).first()

    def test_counters_follow_offered_skills(self):
        first = make_profile("First", skills_offered=["Excel", "Guitar"])
        make_profile("Second", skills_offered=["excel"])
        self.assertEqual(self._count("excel"), 2)
        self.assertEqual(self._count("guitar"), 1)

        first.skills_offered = ["Excel", "Python"]
        first.save()
        self.assertEqual(self._count("guitar"), 0)
        self.assertEqual(self._count("python"), 1)

        first.delete()
        self.assertEqual(self._count("excel"), 1)
        self.assertEqual(self._count("python"), 0)


def calendar_response(payload):
    response = MagicMock()
    response.read.return_value = json.dumps(payload).encode("utf-8")
    response.__enter__.return_value = response
    return response


class GoogleCalendarClientTests(TestCase):
    @patch("core.google_calendar.urllib.request.urlopen")
    def test_query_busy_parses_primary_calendar(self, urlopen):
        urlopen.return_value = calendar_response(
            {
                "calendars": {
                    "primary": {
                        "busy": [{"start": "2026-10-21T09:00:00Z", "end": "2026-10-21T10:00:00Z"}]
                    }
                }
            }
        )
        busy = google_calendar.query_busy(
            "token", WEDNESDAY_NOON, WEDNESDAY_NOON + timedelta(days=7), "Asia/Kolkata"
        )

        self.assertEqual(len(busy), 1)
        self.assertEqual(busy[0].start, datetime(2026, 10, 21, 9, 0, tzinfo=dt_timezone.utc))
        request = urlopen.call_args.args[0]
        self.assertTrue(request.full_url.endswith("/freeBusy"))
        self.assertEqual(request.get_header("Authorization"), "Bearer token")

    @patch("core.google_calendar.urllib.request.urlopen")
    def test_create_event_returns_links_and_invites_attendee(self, urlopen):
        urlopen.return_value = calendar_response(
            {"id": "evt-9", "htmlLink": "https://calendar/evt-9", "hangoutLink": "https://meet/x"}
        )
        event = google_calendar.create_event(
            "token",
            summary="Python pairing",
            start_time=WEDNESDAY_NOON,
            end_time=WEDNESDAY_NOON + timedelta(hours=1),
            attendee_email="mentor@example.com",
        )

        self.assertEqual(event, EventRef("evt-9", "https://calendar/evt-9", "https://meet/x"))
        body = json.loads(urlopen.call_args.kwargs["data"])
        self.assertEqual(body["attendees"], [{"email": "mentor@example.com"}])
        self.assertEqual(body["start"]["dateTime"], "2026-10-21T06:30:00+00:00")

    @patch("core.google_calendar.urllib.request.urlopen")
    def test_http_error_message_is_surfaced(self, urlopen):
        urlopen.side_effect = urllib.error.HTTPError(
            "https://calendar",
            403,
            "Forbidden",
            {},
            io.BytesIO(json.dumps({"error": {"message": "Insufficient Permission"}}).encode("utf-8")),
        )
        with self.assertRaisesMessage(CalendarError, "Insufficient Permission"):
            google_calendar.delete_event("token", "evt-1")

    def test_missing_token_fails_without_request(self):
        with patch("core.google_calendar.urllib.request.urlopen") as urlopen:
            with self.assertRaises(CalendarError):
                google_calendar.query_busy("", WEDNESDAY_NOON, WEDNESDAY_NOON)
        urlopen.assert_not_called()
