"""
Two-way session booking.

A booking creates an event in the organizer's calendar, then one in the
participant's calendar, and only then writes the ``Session`` row. Any failure
leaves no session behind; a calendar event that was already created is
deleted again, and one that cannot be deleted is logged for manual cleanup.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .availability import target_timezone
from .errors import (
    CalendarBookingFailed,
    ExternalServiceFailure,
    InvalidInput,
    NotFound,
    PartialBookingFailure,
)
from .google_calendar import CalendarError, EventRef
from .models import Session

logger = logging.getLogger(__name__)

SESSION_TYPES = {value for value, _label in Session.TYPE_CHOICES}
REQUIRED_FIELDS = (
    "organizer_access_token",
    "participant_access_token",
    "participant_uid",
    "summary",
    "start_time",
    "end_time",
    "skill_topic",
)


@dataclass
class BookingRequest:
    organizer_uid: str
    participant_uid: str
    organizer_access_token: str
    participant_access_token: str
    summary: str
    start_time: object
    end_time: object
    skill_topic: str
    session_type: str = "learning"
    description: str = ""


@dataclass
class BookingResult:
    session: Session
    organizer_event: EventRef
    participant_event: EventRef

    def as_dict(self) -> dict:
        session = self.session
        return {
            "session_id": session.id,
            "organizer": {
                "event_id": self.organizer_event.id,
                "event_link": self.organizer_event.link,
                "hangout_link": self.organizer_event.conference_link,
            },
            "participant": {
                "event_id": self.participant_event.id,
                "event_link": self.participant_event.link,
                "hangout_link": self.participant_event.conference_link,
            },
            "summary": session.summary,
            "start_time": session.start_time.isoformat(),
            "end_time": session.end_time.isoformat(),
            "skill_topic": session.skill_topic,
            "session_type": session.session_type,
            "status": session.status,
        }


def parse_instant(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = parse_datetime(str(value or "").strip())
        except ValueError:
            parsed = None
    if parsed is None:
        raise InvalidInput("Invalid date format. Use ISO format like: 2025-06-12T10:00:00+05:30")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone=target_timezone())
    return parsed


def validate_booking_request(request: BookingRequest):
    missing = [name for name in REQUIRED_FIELDS if not getattr(request, name, None)]
    if missing:
        raise InvalidInput(f"Missing required fields: {', '.join(missing)}")
    if request.session_type not in SESSION_TYPES:
        raise InvalidInput("Session type must be either learning or teaching")
    if request.organizer_uid == request.participant_uid:
        raise InvalidInput("You cannot book a session with yourself")

    start = parse_instant(request.start_time)
    end = parse_instant(request.end_time)
    if start >= end:
        raise InvalidInput("Start time must be before end time")
    return start, end


def _delete_event_quietly(calendar, access_token, event: EventRef, owner_uid) -> bool:
    try:
        calendar.delete_event(access_token, event.id)
    except CalendarError as exc:
        logger.error(
            "Manual reconciliation needed: calendar event %s for user %s was not rolled back: %s",
            event.id,
            owner_uid,
            exc,
        )
        return False
    return True


def book_two_way_session(request: BookingRequest, *, profiles, sessions, calendar) -> BookingResult:
    start, end = validate_booking_request(request)

    organizer = profiles.get(request.organizer_uid)
    participant = profiles.get(request.participant_uid)
    if organizer is None or participant is None:
        raise NotFound("One or both users not found")

    event_fields = {
        "summary": request.summary,
        "start_time": start,
        "end_time": end,
        "description": request.description or f"SkillSwap Session: {request.skill_topic}",
    }

    try:
        organizer_event = calendar.create_event(
            request.organizer_access_token,
            attendee_email=participant.email,
            **event_fields,
        )
    except CalendarError as exc:
        logger.warning("Organizer calendar event failed for %s: %s", organizer.uid, exc)
        raise CalendarBookingFailed(f"Failed to create calendar events for both users: {exc}") from exc

    try:
        participant_event = calendar.create_event(
            request.participant_access_token,
            attendee_email=organizer.email,
            **event_fields,
        )
    except CalendarError as exc:
        logger.warning(
            "Participant calendar event failed for %s, rolling back organizer event %s: %s",
            participant.uid,
            organizer_event.id,
            exc,
        )
        if not _delete_event_quietly(
            calendar, request.organizer_access_token, organizer_event, organizer.uid
        ):
            raise ExternalServiceFailure(
                "Failed to create the participant calendar event and to roll back the "
                f"organizer event {organizer_event.id}; it requires manual cleanup."
            ) from exc
        raise PartialBookingFailure(
            f"Failed to create the participant calendar event; the booking was rolled back: {exc}"
        ) from exc

    try:
        with transaction.atomic():
            session = sessions.create(
                organizer_uid=organizer.uid,
                participant_uid=participant.uid,
                summary=request.summary,
                description=event_fields["description"],
                start_time=start,
                end_time=end,
                skill_topic=request.skill_topic,
                session_type=request.session_type,
                status=Session.STATUS_CONFIRMED,
                organizer_event_id=organizer_event.id,
                organizer_event_link=organizer_event.link,
                participant_event_id=participant_event.id,
                participant_event_link=participant_event.link,
                hangout_link=organizer_event.conference_link or participant_event.conference_link,
            )
    except Exception:
        logger.exception("Session write failed after calendar events were created; rolling back events")
        _delete_event_quietly(calendar, request.organizer_access_token, organizer_event, organizer.uid)
        _delete_event_quietly(
            calendar, request.participant_access_token, participant_event, participant.uid
        )
        raise

    logger.info(
        "Two-way session %s booked for %s & %s (events %s, %s)",
        session.id,
        organizer.uid,
        participant.uid,
        organizer_event.id,
        participant_event.id,
    )
    return BookingResult(
        session=session,
        organizer_event=organizer_event,
        participant_event=participant_event,
    )
