"""
Persistence boundary for the scheduling core.

Matching, availability, booking and rating code never touch the ORM managers
directly; they receive these stores as arguments. Profiles cross the boundary
as ``UserProfileData`` records with absent or malformed availability fields
already default-filled.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Set

from django.db.models import Q
from django.utils import timezone

from .errors import InvalidTimeRange
from .models import MentorDenial, Session, SessionRating, UserProfile
from .time_ranges import WEEKDAYS, format_range, parse_range


@dataclass
class Availability:
    days: List[str] = field(default_factory=list)
    times: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"days": list(self.days), "times": list(self.times)}


@dataclass
class UserProfileData:
    uid: str
    name: str = ""
    email: str = ""
    role: str = "student"
    avatar_url: str = ""
    skills_offered: List[str] = field(default_factory=list)
    skills_wanted: List[str] = field(default_factory=list)
    availability: Availability = field(default_factory=Availability)
    reputation_score: float = 0.0
    rating_count: int = 0
    total_rating_points: int = 0
    calendar_synced: bool = False
    available_slots: List[str] = field(default_factory=list)
    calendar_access_token: str = ""


def normalize_availability(raw) -> Availability:
    if not isinstance(raw, dict):
        return Availability()
    raw_days = raw.get("days")
    raw_times = raw.get("times")
    days = [day for day in raw_days if day in WEEKDAYS] if isinstance(raw_days, list) else []
    times = []
    for value in raw_times if isinstance(raw_times, list) else []:
        try:
            times.append(format_range(parse_range(value)))
        except InvalidTimeRange:
            continue
    return Availability(days=days, times=times)


def _string_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, str) and item.strip()]


def profile_from_model(profile: UserProfile) -> UserProfileData:
    return UserProfileData(
        uid=profile.uid,
        name=profile.name,
        email=profile.email,
        role=profile.role,
        avatar_url=profile.avatar_url or "",
        skills_offered=_string_list(profile.skills_offered),
        skills_wanted=_string_list(profile.skills_wanted),
        availability=normalize_availability(profile.availability),
        reputation_score=float(profile.reputation_score or 0),
        rating_count=int(profile.rating_count or 0),
        total_rating_points=int(profile.total_rating_points or 0),
        calendar_synced=bool(profile.calendar_synced),
        available_slots=_string_list(profile.available_slots),
        calendar_access_token=profile.calendar_access_token or "",
    )


def _session_pk(session_id):
    try:
        return int(session_id)
    except (TypeError, ValueError):
        return None


class ProfileStore:
    def get(self, uid: str, *, for_update: bool = False) -> Optional[UserProfileData]:
        if not uid:
            return None
        queryset = UserProfile.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        profile = queryset.filter(uid=uid).first()
        return profile_from_model(profile) if profile else None

    def put(self, uid: str, fields: dict) -> bool:
        updated = UserProfile.objects.filter(uid=uid).update(**fields, updated_at=timezone.now())
        return updated > 0

    def list_all(self) -> Iterator[UserProfileData]:
        for profile in UserProfile.objects.order_by("created_at", "id").iterator():
            yield profile_from_model(profile)


class SessionStore:
    def create(self, *, organizer_uid: str, participant_uid: str, **fields) -> Session:
        organizer = UserProfile.objects.get(uid=organizer_uid)
        participant = UserProfile.objects.get(uid=participant_uid)
        return Session.objects.create(organizer=organizer, participant=participant, **fields)

    def get(self, session_id) -> Optional[Session]:
        pk = _session_pk(session_id)
        if pk is None:
            return None
        return Session.objects.select_related("organizer", "participant").filter(pk=pk).first()

    def list_by_participant(self, uid: str, status: Optional[str] = None) -> List[Session]:
        queryset = Session.objects.select_related("organizer", "participant").filter(
            Q(organizer__uid=uid) | Q(participant__uid=uid)
        )
        if status:
            queryset = queryset.filter(status=status)
        return list(queryset.order_by("start_time", "id"))

    def set_status(self, session_id, status: str) -> bool:
        pk = _session_pk(session_id)
        if pk is None:
            return False
        return Session.objects.filter(pk=pk).update(status=status, updated_at=timezone.now()) > 0


class RatingStore:
    def find_by_session(self, session_id, mentor_uid: str) -> Optional[SessionRating]:
        pk = _session_pk(session_id)
        if pk is None:
            return None
        return SessionRating.objects.filter(session_id=pk, mentor__uid=mentor_uid).first()

    def insert(self, *, session_id, mentor_uid: str, rater_uid: str, rating: int) -> SessionRating:
        return SessionRating.objects.create(
            session_id=_session_pk(session_id),
            mentor=UserProfile.objects.get(uid=mentor_uid),
            rater=UserProfile.objects.get(uid=rater_uid),
            rating=rating,
        )

    def count_for_session(self, session_id) -> int:
        pk = _session_pk(session_id)
        if pk is None:
            return 0
        return SessionRating.objects.filter(session_id=pk).count()


class DenialStore:
    def add(self, learner_uid: str, mentor_uid: str, reason: str = "user_rejection") -> MentorDenial:
        denial, _ = MentorDenial.objects.get_or_create(
            learner=UserProfile.objects.get(uid=learner_uid),
            mentor=UserProfile.objects.get(uid=mentor_uid),
            defaults={"reason": reason},
        )
        return denial

    def list_denied(self, learner_uid: str) -> Set[str]:
        return set(
            MentorDenial.objects.filter(learner__uid=learner_uid).values_list("mentor__uid", flat=True)
        )


@dataclass
class Stores:
    profiles: ProfileStore
    sessions: SessionStore
    ratings: RatingStore
    denials: DenialStore


def default_stores() -> Stores:
    return Stores(
        profiles=ProfileStore(),
        sessions=SessionStore(),
        ratings=RatingStore(),
        denials=DenialStore(),
    )
