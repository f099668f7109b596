"""
Failure categories raised by the scheduling, matching and rating code.

Every category is a DRF ``APIException`` so views can let them propagate and
the project exception handler renders them with a stable envelope.
"""
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


class SkillSwapError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be completed."
    default_code = "error"
    retryable = False


class InvalidInput(SkillSwapError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input."
    default_code = "invalid_input"


class InvalidTimeRange(InvalidInput):
    default_detail = 'Times must be in format "HH:MM-HH:MM" (e.g., "09:00-12:00").'
    default_code = "invalid_time_range"


class NotFound(SkillSwapError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class Conflict(SkillSwapError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflicting request."
    default_code = "conflict"


class OverlappingTimeRanges(Conflict):
    default_detail = "Time ranges overlap. Please use non-overlapping time slots."
    default_code = "overlapping_time_ranges"


class DuplicateRating(Conflict):
    default_detail = "This mentor has already been rated for this session."
    default_code = "duplicate_rating"


class NotAuthorized(SkillSwapError):
    """The caller is known but not allowed to act on the target (403)."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not authorized to perform this action."
    default_code = "not_authorized"


class ExternalServiceFailure(SkillSwapError):
    """
    An external provider failed or timed out. Safe for the caller to retry the
    whole operation; nothing here retries on its own.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "External service unavailable."
    default_code = "external_service_failure"
    retryable = True


class CalendarUnavailable(ExternalServiceFailure):
    default_detail = "Failed to fetch calendar data."
    default_code = "calendar_unavailable"


class CalendarBookingFailed(ExternalServiceFailure):
    default_detail = "Failed to create calendar events for both users."
    default_code = "calendar_booking_failed"


class PartialBookingFailure(ExternalServiceFailure):
    """The second calendar event failed; the first one was rolled back."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Failed to create the participant calendar event; the booking was rolled back."
    default_code = "partial_booking_failure"


def skillswap_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return None

    detail = response.data
    if isinstance(detail, dict) and set(detail.keys()) == {"detail"}:
        message = str(detail["detail"])
        details = None
    elif isinstance(detail, (list, dict)):
        message = "Validation failed"
        details = detail
    else:
        message = str(detail)
        details = None

    code = getattr(exc, "default_code", None)
    if isinstance(exc, APIException):
        codes = exc.get_codes()
        if isinstance(codes, str):
            code = codes

    response.data = {
        "success": False,
        "error": message,
        "code": code or "error",
        "retryable": bool(getattr(exc, "retryable", False)),
    }
    if details is not None:
        response.data["details"] = details
    return response
