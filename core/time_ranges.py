from __future__ import annotations

import re
from typing import Iterable, List, NamedTuple, Union

from .errors import InvalidTimeRange, OverlappingTimeRanges


WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_RANGE_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)-([01]\d|2[0-3]):([0-5]\d)$")


class TimeRange(NamedTuple):
    """Minutes since midnight, ``0 <= start < end <= 1439``."""

    start: int
    end: int


RangeLike = Union[TimeRange, str]


def parse_range(value: str) -> TimeRange:
    match = _RANGE_PATTERN.match(str(value or "").strip())
    if not match:
        raise InvalidTimeRange(
            f'Invalid time range "{value}": times must be in format "HH:MM-HH:MM" (e.g., "09:00-12:00").'
        )
    start_hour, start_min, end_hour, end_min = (int(part) for part in match.groups())
    start = start_hour * 60 + start_min
    end = end_hour * 60 + end_min
    if start >= end:
        raise InvalidTimeRange(
            f'Invalid time range "{value}": start time must be before end time.'
        )
    return TimeRange(start, end)


def format_range(time_range: TimeRange) -> str:
    return (
        f"{time_range.start // 60:02d}:{time_range.start % 60:02d}-"
        f"{time_range.end // 60:02d}:{time_range.end % 60:02d}"
    )


def _coerce(value: RangeLike) -> TimeRange:
    if isinstance(value, TimeRange):
        return value
    return parse_range(value)


def ranges_overlap(a: RangeLike, b: RangeLike) -> bool:
    # Half-open: touching endpoints do not overlap.
    a, b = _coerce(a), _coerce(b)
    return a.start < b.end and b.start < a.end


def all_pairwise_non_overlapping(ranges: Iterable[RangeLike]) -> bool:
    parsed = [_coerce(item) for item in ranges]
    for index, first in enumerate(parsed):
        for second in parsed[index + 1:]:
            if ranges_overlap(first, second):
                return False
    return True


def any_ranges_overlap(left: Iterable[RangeLike], right: Iterable[RangeLike]) -> bool:
    """True when some range of ``left`` overlaps some range of ``right``.

    Unparseable entries are ignored rather than failing the comparison.
    """
    left_parsed = _parse_lenient(left)
    right_parsed = _parse_lenient(right)
    return any(ranges_overlap(a, b) for a in left_parsed for b in right_parsed)


def _parse_lenient(values: Iterable[RangeLike]) -> List[TimeRange]:
    parsed = []
    for value in values or []:
        try:
            parsed.append(_coerce(value))
        except InvalidTimeRange:
            continue
    return parsed


def validate_declared_times(times: Iterable[str]) -> List[str]:
    """Parse a declared availability set and reject it if any two ranges overlap."""
    values = list(times or [])
    parsed = [parse_range(value) for value in values]
    for i in range(len(parsed)):
        for j in range(i + 1, len(parsed)):
            if ranges_overlap(parsed[i], parsed[j]):
                raise OverlappingTimeRanges(
                    f'Time ranges "{values[i]}" and "{values[j]}" overlap. '
                    "Please use non-overlapping time slots."
                )
    return [format_range(item) for item in parsed]
