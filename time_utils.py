"""
Time helpers for the pre-order checkout.

Times are stored as 24-hour "HH:MM" strings and shown to customers as
12-hour hour/minute/period triples. The allowed-option helpers back the
hour and minute pickers for an owner-published window.
"""
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional

HOURS_12 = tuple(str(idx + 1).rjust(2, "0") for idx in range(12))
MINUTES_60 = tuple(str(idx).rjust(2, "0") for idx in range(60))
PERIODS = ("AM", "PM")

DEFAULT_HOUR = "12"
DEFAULT_MINUTE = "00"
DEFAULT_PERIOD = "PM"
HOUR_PLACEHOLDER = "HH"
DEFAULT_PREORDER_TIME = "13:00"


class TimeParts(NamedTuple):
    hour: str
    minute: str
    period: str


DEFAULT_TIME_PARTS = TimeParts(DEFAULT_HOUR, DEFAULT_MINUTE, DEFAULT_PERIOD)


def get_today_iso_date() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def time_to_minutes(value: Optional[str]) -> Optional[int]:
    """Minutes since midnight for "HH:MM", or None when it cannot be parsed."""
    if not value:
        return None
    parts = value.split(":")
    if len(parts) < 2:
        return None
    try:
        hh, mm = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    return hh * 60 + mm


def to_12_hour_parts(value: Optional[str] = None) -> TimeParts:
    if not value:
        return DEFAULT_TIME_PARTS
    hh_str, _, mm = value.partition(":")
    try:
        hh = int(hh_str)
    except ValueError:
        return DEFAULT_TIME_PARTS
    period = "PM" if hh >= 12 else "AM"
    hh = hh % 12
    if hh == 0:
        hh = 12
    return TimeParts(str(hh).rjust(2, "0"), mm or DEFAULT_MINUTE, period)


def _hour_to_24(hour: int, period: str) -> int:
    if period == "PM" and hour != 12:
        return hour + 12
    if period == "AM" and hour == 12:
        return 0
    return hour


def _hour_to_12_label(hour24: int) -> str:
    if hour24 == 0:
        hour12 = 12
    elif hour24 > 12:
        hour12 = hour24 - 12
    else:
        hour12 = hour24
    return str(hour12).rjust(2, "0")


def _parts_to_24(parts: TimeParts) -> int:
    return _hour_to_24(int(parts.hour), parts.period)


def to_24_hour_string(hour: str, minute: str, period: str) -> str:
    # Callers only pass picker values, so the range is not checked here.
    hh = _hour_to_24(int(hour), period)
    return f"{str(hh).rjust(2, '0')}:{minute.rjust(2, '0')}"


def format_time_12h(value: Optional[str] = None) -> str:
    if not value:
        return ""
    hour, minute, period = to_12_hour_parts(value)
    return f"{int(hour)}:{minute or DEFAULT_MINUTE} {period}"


def format_time_range_12h(start: Optional[str] = None, end: Optional[str] = None) -> str:
    if not start or not end:
        return ""
    return f"{format_time_12h(start)} - {format_time_12h(end)}"


def get_allowed_hours(start_time: Optional[str] = None, end_time: Optional[str] = None) -> List[str]:
    """Hour labels ("01".."12") that fall inside the window, both ends inclusive.

    A start later than the end wraps past midnight, giving the union of
    [start, 23] and [0, end].
    """
    if not start_time or not end_time:
        return list(HOURS_12)

    start24 = _parts_to_24(to_12_hour_parts(start_time))
    end24 = _parts_to_24(to_12_hour_parts(end_time))

    if start24 > end24:
        hours = list(range(start24, 24)) + list(range(0, end24 + 1))
    else:
        hours = list(range(start24, end24 + 1))

    return sorted({_hour_to_12_label(h) for h in hours}, key=int)


def get_allowed_minutes(
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    selected_hour: Optional[str] = None,
    selected_period: Optional[str] = None,
) -> List[str]:
    """Minute labels selectable for an hour/period inside the window.

    Only the window's first and last hours are trimmed; hours strictly
    inside the window allow every minute. An hour label that the window
    never offers yields no minutes.
    """
    if not start_time or not end_time:
        return list(MINUTES_60)
    if not selected_hour or selected_hour == HOUR_PLACEHOLDER or not selected_period:
        return list(MINUTES_60)
    try:
        selected_hour_num = int(selected_hour)
    except ValueError:
        return list(MINUTES_60)

    if selected_hour_num not in {int(h) for h in get_allowed_hours(start_time, end_time)}:
        return []

    start_parts = to_12_hour_parts(start_time)
    end_parts = to_12_hour_parts(end_time)
    try:
        start_minute = int(start_parts.minute)
        end_minute = int(end_parts.minute)
    except ValueError:
        return list(MINUTES_60)
    start24 = _parts_to_24(start_parts)
    end24 = _parts_to_24(end_parts)
    selected24 = _hour_to_24(selected_hour_num, selected_period)

    allowed: List[int] = []
    if start24 * 60 + start_minute > end24 * 60 + end_minute:
        # spans midnight
        if selected24 >= start24 or selected24 <= end24:
            if selected24 == start24:
                allowed = list(range(start_minute, 60))
            elif selected24 == end24:
                allowed = list(range(0, end_minute + 1))
            else:
                allowed = list(range(60))
    elif start24 <= selected24 <= end24:
        if selected24 == start24 and selected24 == end24:
            allowed = list(range(start_minute, end_minute + 1))
        elif selected24 == start24:
            allowed = list(range(start_minute, 60))
        elif selected24 == end24:
            allowed = list(range(0, end_minute + 1))
        else:
            allowed = list(range(60))

    return [str(m).rjust(2, "0") for m in allowed]


def determine_period(hour: str, start_time: Optional[str] = None, end_time: Optional[str] = None) -> str:
    """Pick the period that places a bare hour label inside the window."""
    if not start_time or not end_time or hour in (HOUR_PLACEHOLDER, ""):
        return DEFAULT_PERIOD
    try:
        hour_num = int(hour)
    except ValueError:
        return DEFAULT_PERIOD

    start24 = _parts_to_24(to_12_hour_parts(start_time))
    end24 = _parts_to_24(to_12_hour_parts(end_time))
    hour_am24 = 0 if hour_num == 12 else hour_num
    hour_pm24 = 12 if hour_num == 12 else hour_num + 12

    if start24 > end24:
        if 0 <= hour_am24 <= end24:
            return "AM"
        if start24 <= hour_pm24 < 24:
            return "PM"
        return DEFAULT_PERIOD

    if start24 <= hour_am24 <= end24:
        return "AM"
    if start24 <= hour_pm24 <= end24:
        return "PM"
    return "AM" if abs(hour_am24 - start24) <= abs(hour_pm24 - start24) else "PM"
