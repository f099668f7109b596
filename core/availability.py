from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Tuple
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone

from .errors import CalendarUnavailable, InvalidInput, NotFound
from .google_calendar import CalendarError
from .models import Session
from .stores import Availability, normalize_availability
from .time_ranges import WEEKDAYS, TimeRange, parse_range

logger = logging.getLogger(__name__)


@dataclass
class CalendarSyncResult:
    available_slots: List[str]
    busy_times_count: int
    user_availability: dict
    slots_generated: int


def target_timezone() -> ZoneInfo:
    return ZoneInfo(settings.SKILLSWAP_TIMEZONE)


def format_slot(slot_start: datetime) -> str:
    local = slot_start.astimezone(target_timezone())
    hour = local.hour % 12 or 12
    suffix = "am" if local.hour < 12 else "pm"
    return f"{WEEKDAYS[local.weekday()]}, {local:%d/%m/%Y}, {hour:02d}:{local.minute:02d} {suffix}"


def _interval_bounds(item) -> Tuple[datetime, datetime]:
    if isinstance(item, Session):
        return item.start_time, item.end_time
    if isinstance(item, dict):
        return item["start"], item["end"]
    start, end = item
    return start, end


def _overlaps_any(slot_start, slot_end, intervals) -> bool:
    return any(slot_start < end and start < slot_end for start, end in intervals)


def _default_working_hours() -> TimeRange:
    return TimeRange(
        settings.SKILLSWAP_WORKING_HOURS_START * 60,
        settings.SKILLSWAP_WORKING_HOURS_END * 60,
    )


def generate_available_slots(
    availability,
    busy_times: Iterable,
    booked_sessions: Iterable,
    *,
    now: datetime | None = None,
) -> List[str]:
    """
    Open 30-minute slots over the rolling window starting today.

    Days without a declared preference are included, and ranges default to
    working hours. A slot is kept only when it overlaps neither a calendar
    busy interval nor a booked session.
    """
    if not isinstance(availability, Availability):
        availability = normalize_availability(availability)
    tz = target_timezone()
    today = (now or timezone.now()).astimezone(tz).date()
    step = timedelta(minutes=settings.SKILLSWAP_SLOT_MINUTES)

    busy = [_interval_bounds(item) for item in busy_times or []]
    booked = [_interval_bounds(item) for item in booked_sessions or []]

    declared_ranges = sorted(parse_range(value) for value in availability.times)
    candidates = []
    for offset in range(settings.SKILLSWAP_AVAILABILITY_DAYS):
        day = today + timedelta(days=offset)
        weekday = WEEKDAYS[day.weekday()]
        if availability.days and weekday not in availability.days:
            continue
        day_start = datetime(day.year, day.month, day.day, tzinfo=tz)
        for time_range in declared_ranges or [_default_working_hours()]:
            minute = time_range.start
            while minute < time_range.end:
                slot_start = day_start + timedelta(minutes=minute)
                slot_end = slot_start + step
                minute += settings.SKILLSWAP_SLOT_MINUTES
                if _overlaps_any(slot_start, slot_end, busy):
                    continue
                if _overlaps_any(slot_start, slot_end, booked):
                    continue
                candidates.append(slot_start)

    slots = []
    seen = set()
    for slot_start in sorted(candidates):
        if slot_start in seen:
            continue
        seen.add(slot_start)
        slots.append(format_slot(slot_start))
    return slots


def sync_calendar_availability(uid, access_token, *, profiles, sessions, calendar, now=None):
    profile = profiles.get(uid)
    if profile is None:
        raise NotFound("User not found")
    token = access_token or profile.calendar_access_token
    if not token:
        raise InvalidInput("Google Calendar access token is required")

    now = now or timezone.now()
    window_end = now + timedelta(days=settings.SKILLSWAP_AVAILABILITY_DAYS)
    try:
        busy_times = calendar.query_busy(token, now, window_end)
    except CalendarError as exc:
        logger.warning("Calendar busy query failed for user %s: %s", uid, exc)
        raise CalendarUnavailable(f"Failed to fetch calendar data: {exc}") from exc

    booked = sessions.list_by_participant(uid, Session.STATUS_CONFIRMED)
    slots = generate_available_slots(profile.availability, busy_times, booked, now=now)

    profiles.put(
        uid,
        {
            "calendar_synced": True,
            "calendar_busy_times": [
                {"start": start.isoformat(), "end": end.isoformat()}
                for start, end in (_interval_bounds(item) for item in busy_times)
            ],
            "available_slots": slots,
            "calendar_last_sync": now,
        },
    )
    logger.info(
        "Calendar synced for user %s: %s busy intervals, %s open slots, %s booked sessions",
        uid,
        len(busy_times),
        len(slots),
        len(booked),
    )
    return CalendarSyncResult(
        available_slots=slots,
        busy_times_count=len(busy_times),
        user_availability=profile.availability.as_dict(),
        slots_generated=len(slots),
    )
