"""
Availability checking utilities.
Blocked-time unrolling, interval overlap and calendar-period counting.
"""

from datetime import datetime, date, time, timedelta
from typing import Iterable, Iterator, Mapping, Optional

from .recurrence import iter_recurrence, sunday_weekday
from .types import (
    BlockedTime,
    LimitPeriod,
    RecurrenceKind,
    RestPeriod,
    ShiftOccurrence,
    StaffMember,
)


BLOCKED_TIME_HORIZON_DAYS = 365


def datetime_ranges_overlap(
    start1: datetime, end1: datetime,
    start2: datetime, end2: datetime
) -> bool:
    """Check if two datetime ranges overlap. Touching ranges do not."""
    return start1 < end2 and start2 < end1


def blocked_window(blocked: BlockedTime) -> tuple[datetime, datetime]:
    """Base window of a blocked time, widened to whole days when it is full-day."""
    if not blocked.is_full_day:
        return blocked.start, blocked.end
    start = datetime.combine(blocked.start.date(), time.min)
    end_midnight = datetime.combine(blocked.end.date(), time.min)
    if blocked.end == end_midnight and end_midnight > start:
        return start, end_midnight
    return start, end_midnight + timedelta(days=1)


def iter_blocked_intervals(
    blocked: BlockedTime,
    limit: datetime,
) -> Iterator[tuple[datetime, datetime]]:
    """
    All concrete windows of a (possibly recurring) blocked time starting up to `limit`.
    A weekly rule with explicit weekdays only blocks those weekdays, its own
    start date included.
    """
    start, end = blocked_window(blocked)
    duration = end - start
    rule = blocked.recurrence
    weekdays = set(rule.weekdays) if rule and rule.kind == RecurrenceKind.WEEKLY else set()
    for occurrence_start, _ in iter_recurrence(start, rule, limit):
        if weekdays and sunday_weekday(occurrence_start) not in weekdays:
            continue
        yield occurrence_start, occurrence_start + duration


def find_blocked_conflicts(
    staff: StaffMember,
    start: datetime,
    end: datetime,
    horizon_days: int = BLOCKED_TIME_HORIZON_DAYS,
) -> list[tuple[datetime, datetime]]:
    """
    Blocked windows of a staff member that overlap [start, end).
    Recurring entries are unrolled no further than `horizon_days` past `start`.
    """
    limit = min(start + timedelta(days=horizon_days), end)
    conflicts = []
    for blocked in staff.blocked_times:
        for blocked_start, blocked_end in iter_blocked_intervals(blocked, limit):
            if datetime_ranges_overlap(start, end, blocked_start, blocked_end):
                conflicts.append((blocked_start, blocked_end))
    return sorted(conflicts)


def is_staff_blocked(
    staff: StaffMember,
    start: datetime,
    end: datetime,
    horizon_days: int = BLOCKED_TIME_HORIZON_DAYS,
) -> bool:
    return bool(find_blocked_conflicts(staff, start, end, horizon_days))


def period_bounds(moment: datetime, period) -> tuple[datetime, datetime]:
    """Half-open [start, end) of the day / ISO week / month / year containing `moment`."""
    day_start = datetime.combine(moment.date(), time.min)
    if period == LimitPeriod.DAY:
        return day_start, day_start + timedelta(days=1)
    if period in (LimitPeriod.WEEK, RestPeriod.WEEK):
        week_start = day_start - timedelta(days=moment.weekday())
        return week_start, week_start + timedelta(days=7)
    if period in (LimitPeriod.MONTH, RestPeriod.MONTH):
        month_start = day_start.replace(day=1)
        if month_start.month == 12:
            return month_start, month_start.replace(year=month_start.year + 1, month=1)
        return month_start, month_start.replace(month=month_start.month + 1)
    if period == LimitPeriod.YEAR:
        year_start = day_start.replace(month=1, day=1)
        return year_start, year_start.replace(year=year_start.year + 1)
    raise ValueError(f"Unknown period: {period!r}")


def assignment_map(
    occurrences: Iterable[ShiftOccurrence],
    proposed: Optional[Mapping[str, Iterable[str]]] = None,
) -> dict[str, list[str]]:
    """Effective staff per occurrence: proposed lists override stored ones."""
    result = {}
    for occ in occurrences:
        if occ.is_deleted:
            continue
        if proposed is not None and occ.id in proposed:
            result[occ.id] = list(proposed[occ.id])
        else:
            result[occ.id] = list(occ.assigned_staff_ids)
    return result


def count_assignments_in_window(
    staff_id: str,
    occurrences: Iterable[ShiftOccurrence],
    assigned: Mapping[str, list[str]],
    window_start: datetime,
    window_end: datetime,
) -> int:
    """Number of occurrences starting in [window_start, window_end) the staff member works."""
    count = 0
    for occ in occurrences:
        if occ.id not in assigned:
            continue
        if window_start <= occ.start < window_end and staff_id in assigned[occ.id]:
            count += 1
    return count


def work_days_in_window(
    staff_ids: set[str],
    occurrences: Iterable[ShiftOccurrence],
    assigned: Mapping[str, list[str]],
    window_start: datetime,
    window_end: datetime,
) -> set[date]:
    """Calendar days in the window on which any of `staff_ids` starts a shift."""
    days = set()
    for occ in occurrences:
        if occ.id not in assigned:
            continue
        if window_start <= occ.start < window_end and staff_ids.intersection(assigned[occ.id]):
            days.add(occ.start.date())
    return days


def longest_rest_run(work_days: set[date], window_start: datetime, window_end: datetime) -> int:
    """Longest run of consecutive days in the window without a work day."""
    longest = 0
    current = 0
    day = window_start.date()
    last = window_end.date()
    while day < last:
        if day in work_days:
            current = 0
        else:
            current += 1
            longest = max(longest, current)
        day += timedelta(days=1)
    return longest
