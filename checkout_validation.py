"""
Pre-order checks for the checkout flow.

Every validator returns a message for the customer, or "" when the value is
acceptable. Nothing here raises.
"""
from typing import Optional, Sequence

from schemas import PreorderSchedule, PreorderValidation, ScheduleWindow, TimeSelection
from time_utils import DEFAULT_PREORDER_TIME, format_time_12h, get_today_iso_date, time_to_minutes

NO_PUBLISHED_DATES = "Owner has not published any pre-order dates."
DATE_NOT_PUBLISHED = "Please choose one of the published pre-order dates."
TIME_REQUIRED = "Please select a preferred time within the window."
DATE_REQUIRED_FIRST = "Choose an available date first."
INVALID_TIME_FORMAT = "Invalid time format."


def find_schedule_window(date: str, scheduled_dates: Sequence[ScheduleWindow]) -> Optional[ScheduleWindow]:
    for entry in scheduled_dates:
        if entry.date == date:
            return entry
    return None


def validate_pre_order_date(
    date: str,
    restrictions_enabled: bool,
    has_configured_dates: bool,
    scheduled_dates: Sequence[ScheduleWindow],
) -> str:
    if not date or not restrictions_enabled:
        return ""
    if not has_configured_dates:
        return NO_PUBLISHED_DATES
    if find_schedule_window(date, scheduled_dates) is None:
        return DATE_NOT_PUBLISHED
    return ""


def validate_pre_order_time(
    time: str,
    date: str,
    restrictions_enabled: bool,
    scheduled_dates: Sequence[ScheduleWindow],
) -> str:
    if not restrictions_enabled:
        return ""
    if not time:
        return TIME_REQUIRED
    entry = find_schedule_window(date, scheduled_dates)
    if entry is None:
        return DATE_REQUIRED_FIRST
    selected = time_to_minutes(time)
    start = time_to_minutes(entry.start_time)
    end = time_to_minutes(entry.end_time)
    if selected is None or start is None or end is None:
        return INVALID_TIME_FORMAT
    # Plain range check: a window that wraps past midnight rejects every time here.
    if selected < start or selected > end:
        return f"Time must be between {format_time_12h(entry.start_time)} and {format_time_12h(entry.end_time)}"
    return ""


def clamp_pre_order_date(date: str) -> str:
    return date or get_today_iso_date()


def clamp_pre_order_time(time: str) -> str:
    return time or DEFAULT_PREORDER_TIME


def validate_pre_order_selection(selection: TimeSelection, schedule: PreorderSchedule) -> PreorderValidation:
    """Clamp a checkout selection and run both validators against the schedule."""
    date = clamp_pre_order_date(selection.date)
    time = clamp_pre_order_time(selection.time)
    return PreorderValidation(
        date=date,
        time=time,
        date_error=validate_pre_order_date(
            date, schedule.restrictions_enabled, bool(schedule.dates), schedule.dates
        ),
        time_error=validate_pre_order_time(time, date, schedule.restrictions_enabled, schedule.dates),
    )
