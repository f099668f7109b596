from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List

from django.conf import settings

from .errors import InvalidInput, NotFound
from .stores import UserProfileData
from .time_ranges import any_ranges_overlap

logger = logging.getLogger(__name__)

SKILL_MATCH_WEIGHT = 5
AVAILABILITY_WEIGHT = 2


@dataclass
class ScoredMentor:
    mentor: UserProfileData
    score: float
    skill_match_points: int
    reputation_contribution: float
    availability_points: int
    matched_skills: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        mentor = self.mentor
        return {
            "uid": mentor.uid,
            "name": mentor.name,
            "avatar_url": mentor.avatar_url,
            "skills_offered": mentor.skills_offered,
            "reputation_score": mentor.reputation_score,
            "rating_count": mentor.rating_count,
            "availability": displayed_availability(mentor),
            "calendar_synced": mentor.calendar_synced,
            "match_score": self.score,
            "skill_match_points": self.skill_match_points,
            "reputation_contribution": self.reputation_contribution,
            "availability_points": self.availability_points,
            "matched_skills": self.matched_skills,
        }


def _norm(value: str) -> str:
    return (value or "").strip().lower()


def _round_half_up(value: float, places: int) -> float:
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor


def displayed_availability(mentor: UserProfileData):
    """Synced mentors show their concrete slots, even when none are left."""
    if mentor.calendar_synced:
        return list(mentor.available_slots)
    return mentor.availability.as_dict()


def matched_skills(wanted: Iterable[str], offered: Iterable[str]) -> List[str]:
    offered_norm = {_norm(skill) for skill in offered or []}
    return [skill for skill in wanted or [] if _norm(skill) in offered_norm]


def availability_match(learner: UserProfileData, mentor: UserProfileData) -> bool:
    if learner.calendar_synced and mentor.calendar_synced:
        return bool(set(learner.available_slots) & set(mentor.available_slots))
    common_days = set(learner.availability.days) & set(mentor.availability.days)
    if not common_days:
        return False
    return any_ranges_overlap(learner.availability.times, mentor.availability.times)


def score_mentor(learner: UserProfileData, mentor: UserProfileData) -> ScoredMentor:
    skills = matched_skills(learner.skills_wanted, mentor.skills_offered)
    # Binary bonus: one shared skill counts the same as five.
    skill_points = SKILL_MATCH_WEIGHT if skills else 0
    # Added even without a skill match; kept as observed behaviour.
    reputation = mentor.reputation_score * 3 / 5
    availability_points = AVAILABILITY_WEIGHT if availability_match(learner, mentor) else 0

    total = skill_points + reputation + availability_points
    return ScoredMentor(
        mentor=mentor,
        score=_round_half_up(total, 1),
        skill_match_points=skill_points,
        reputation_contribution=_round_half_up(reputation, 2),
        availability_points=availability_points,
        matched_skills=skills,
    )


def rank_mentors(
    learner: UserProfileData,
    candidates: Iterable[UserProfileData],
    *,
    exclude_uids: Iterable[str] = (),
    limit: int | None = None,
) -> List[ScoredMentor]:
    excluded = set(exclude_uids or ())
    limit = settings.SKILLSWAP_MATCH_LIMIT if limit is None else limit
    results: List[ScoredMentor] = []
    for mentor in candidates:
        if mentor.uid == learner.uid or mentor.uid in excluded:
            continue
        if not mentor.skills_offered:
            continue
        scored = score_mentor(learner, mentor)
        if scored.score > 0:
            results.append(scored)

    # list.sort is stable, so ties keep enumeration order.
    results.sort(key=lambda r: r.score, reverse=True)
    return results[:limit]


def find_matches(uid: str, *, profiles, denials, limit: int | None = None) -> List[ScoredMentor]:
    learner = profiles.get(uid)
    if learner is None:
        raise NotFound("User not found")
    denied = denials.list_denied(uid)
    logger.info(
        "Finding matches for user %s who wants to learn: %s",
        uid,
        ", ".join(learner.skills_wanted) or "-",
    )
    matches = rank_mentors(learner, profiles.list_all(), exclude_uids=denied, limit=limit)
    logger.info("Computed %s matches for user %s (%s denied)", len(matches), uid, len(denied))
    return matches


def store_denial(learner_uid: str, mentor_uid: str, *, profiles, denials, reason: str = "user_rejection"):
    if learner_uid == mentor_uid:
        raise InvalidInput("You cannot deny yourself.")
    if profiles.get(learner_uid) is None:
        raise NotFound("User not found")
    if profiles.get(mentor_uid) is None:
        raise NotFound("Mentor not found")
    denial = denials.add(learner_uid, mentor_uid, reason=reason)
    logger.info("Stored denial: %s rejected %s", learner_uid, mentor_uid)
    return denial


def get_mentor_profile(uid: str, *, profiles) -> dict:
    mentor = profiles.get(uid)
    if mentor is None:
        raise NotFound("Mentor not found")
    return {
        "uid": mentor.uid,
        "name": mentor.name,
        "avatar_url": mentor.avatar_url,
        "skills_offered": mentor.skills_offered,
        "reputation_score": mentor.reputation_score,
        "rating_count": mentor.rating_count,
        "availability": displayed_availability(mentor),
        "calendar_synced": mentor.calendar_synced,
    }
