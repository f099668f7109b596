from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.db import IntegrityError, transaction

from .errors import Conflict, DuplicateRating, InvalidInput, NotAuthorized, NotFound
from .models import Session

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
PARTICIPANTS_PER_SESSION = 2


@dataclass
class RatingResult:
    mentor_uid: str
    session_id: int
    rating: int
    new_reputation_score: float
    total_ratings: int
    session_status: str

    def as_dict(self) -> dict:
        return {
            "mentor_uid": self.mentor_uid,
            "session_id": self.session_id,
            "rating": self.rating,
            "new_reputation_score": self.new_reputation_score,
            "total_ratings": self.total_ratings,
            "session_status": self.session_status,
        }


def running_average(old_score, old_count: int, rating: int) -> Decimal:
    """Fold one rating into an average, rounded half-up to two decimals."""
    total = Decimal(str(old_score)) * old_count + rating
    return (total / (old_count + 1)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _validate_rating_value(rating) -> int:
    # JSON numbers such as 5.0 count as whole numbers.
    if isinstance(rating, float) and rating.is_integer():
        rating = int(rating)
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidInput("Rating must be a whole number between 1 and 5")
    if rating < MIN_RATING or rating > MAX_RATING:
        raise InvalidInput("Rating must be between 1 and 5")
    return rating


def submit_rating(*, rater_uid, session_id, mentor_uid, rating, profiles, sessions, ratings) -> RatingResult:
    session = sessions.get(session_id)
    if session is None:
        raise NotFound("Session not found")

    participants = session.participants
    if mentor_uid not in participants:
        raise NotAuthorized("Mentor was not part of this session")
    if ratings.find_by_session(session.id, mentor_uid) is not None:
        raise DuplicateRating("You have already rated this mentor for this session")
    if rater_uid not in participants or rater_uid == mentor_uid:
        raise NotAuthorized("Only the other participant of the session can rate this mentor")
    rating = _validate_rating_value(rating)
    if session.status == Session.STATUS_CANCELLED:
        raise Conflict("Cancelled sessions cannot be rated")

    try:
        with transaction.atomic():
            mentor = profiles.get(mentor_uid, for_update=True)
            if mentor is None:
                raise NotFound("Mentor not found")
            # Repeated under the row lock; concurrent submissions serialize here.
            if ratings.find_by_session(session.id, mentor_uid) is not None:
                raise DuplicateRating("You have already rated this mentor for this session")

            ratings.insert(
                session_id=session.id,
                mentor_uid=mentor_uid,
                rater_uid=rater_uid,
                rating=rating,
            )
            new_score = running_average(mentor.reputation_score, mentor.rating_count, rating)
            new_count = mentor.rating_count + 1
            profiles.put(
                mentor_uid,
                {
                    "reputation_score": new_score,
                    "rating_count": new_count,
                    "total_rating_points": mentor.total_rating_points + rating,
                },
            )

            session_status = session.status
            if ratings.count_for_session(session.id) >= PARTICIPANTS_PER_SESSION:
                sessions.set_status(session.id, Session.STATUS_COMPLETED)
                session_status = Session.STATUS_COMPLETED
    except IntegrityError as exc:
        logger.warning("Duplicate rating for mentor %s in session %s", mentor_uid, session.id)
        raise DuplicateRating("You have already rated this mentor for this session") from exc

    logger.info(
        "Rating %s applied to mentor %s for session %s: reputation %s over %s ratings",
        rating,
        mentor_uid,
        session.id,
        new_score,
        new_count,
    )
    return RatingResult(
        mentor_uid=mentor_uid,
        session_id=session.id,
        rating=rating,
        new_reputation_score=float(new_score),
        total_ratings=new_count,
        session_status=session_status,
    )
