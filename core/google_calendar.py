import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from datetime import timezone as dt_timezone
from typing import NamedTuple

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_datetime

logger = logging.getLogger(__name__)

PRIMARY_CALENDAR = "primary"


class CalendarError(Exception):
    pass


class BusyInterval(NamedTuple):
    start: object
    end: object


class EventRef(NamedTuple):
    id: str
    link: str
    conference_link: str


def _api_url(path, query=None):
    url = f"{settings.GOOGLE_CALENDAR_API_BASE}{path}"
    if query:
        url = f"{url}?{urllib.parse.urlencode(query)}"
    return url


def _error_message(exc, fallback):
    try:
        detail = json.loads(exc.read().decode("utf-8"))
    except (ValueError, OSError):
        return exc.reason or fallback
    error = detail.get("error") if isinstance(detail, dict) else None
    if isinstance(error, dict):
        return error.get("message") or fallback
    if isinstance(error, str):
        return detail.get("error_description") or error
    return fallback


def _call(method, path, access_token, *, payload=None, query=None, fallback="Calendar request failed."):
    if not access_token:
        raise CalendarError("Missing calendar access token.")
    request = urllib.request.Request(_api_url(path, query), method=method)
    request.add_header("Authorization", f"Bearer {access_token}")
    request.add_header("Accept", "application/json")
    body = None
    if payload is not None:
        request.add_header("Content-Type", "application/json")
        body = json.dumps(payload).encode("utf-8")
    try:
        with urllib.request.urlopen(
            request, data=body, timeout=settings.GOOGLE_CALENDAR_TIMEOUT_SECONDS
        ) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        raise CalendarError(_error_message(exc, fallback)) from exc
    except OSError as exc:
        # URLError and socket timeouts both land here.
        reason = getattr(exc, "reason", None) or exc
        raise CalendarError(f"{fallback} ({reason})") from exc
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise CalendarError(f"{fallback} (unreadable response)") from exc


def _format_datetime(value):
    if timezone.is_naive(value):
        value = timezone.make_aware(value, timezone=timezone.get_current_timezone())
    return value.astimezone(dt_timezone.utc).isoformat()


def _parse_instant(value):
    parsed = parse_datetime(str(value or ""))
    if parsed is None:
        raise CalendarError(f"Calendar returned an unreadable time: {value!r}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone=dt_timezone.utc)
    return parsed


def query_busy(access_token, time_min, time_max, time_zone=None):
    payload = {
        "timeMin": _format_datetime(time_min),
        "timeMax": _format_datetime(time_max),
        "timeZone": time_zone or settings.SKILLSWAP_TIMEZONE,
        "items": [{"id": PRIMARY_CALENDAR}],
    }
    data = _call(
        "POST",
        "/freeBusy",
        access_token,
        payload=payload,
        fallback="Failed to fetch calendar data.",
    )
    calendar = (data.get("calendars") or {}).get(PRIMARY_CALENDAR) or {}
    if calendar.get("errors"):
        reason = calendar["errors"][0].get("reason") or "unknown"
        raise CalendarError(f"Failed to fetch calendar data ({reason}).")
    busy = [
        BusyInterval(_parse_instant(item.get("start")), _parse_instant(item.get("end")))
        for item in calendar.get("busy") or []
    ]
    logger.info("Retrieved %s busy intervals from Google Calendar", len(busy))
    return busy


def create_event(
    access_token,
    *,
    summary,
    start_time,
    end_time,
    attendee_email,
    description="",
    time_zone=None,
):
    time_zone = time_zone or settings.SKILLSWAP_TIMEZONE
    payload = {
        "summary": summary,
        "description": description or "SkillSwap Learning Session",
        "start": {"dateTime": _format_datetime(start_time), "timeZone": time_zone},
        "end": {"dateTime": _format_datetime(end_time), "timeZone": time_zone},
        "attendees": [{"email": attendee_email}] if attendee_email else [],
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 24 * 60},
                {"method": "popup", "minutes": 10},
            ],
        },
    }
    data = _call(
        "POST",
        f"/calendars/{PRIMARY_CALENDAR}/events",
        access_token,
        payload=payload,
        fallback="Failed to create calendar event.",
    )
    event_id = data.get("id")
    if not event_id:
        raise CalendarError("Calendar did not return an event id.")
    logger.info("Created calendar event %s", event_id)
    return EventRef(
        id=event_id,
        link=data.get("htmlLink") or "",
        conference_link=data.get("hangoutLink") or "",
    )


def delete_event(access_token, event_id):
    _call(
        "DELETE",
        f"/calendars/{PRIMARY_CALENDAR}/events/{urllib.parse.quote(str(event_id), safe='')}",
        access_token,
        query={"sendUpdates": "all"},
        fallback="Failed to delete calendar event.",
    )
    logger.info("Deleted calendar event %s", event_id)
