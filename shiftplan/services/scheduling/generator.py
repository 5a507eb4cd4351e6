"""
Scheduling entry points - main orchestration layer.

This module provides the high-level API consumed by the surrounding
application: occurrence expansion, single-assignment evaluation and
weekly auto-scheduling. Everything is passed in and returned; nothing
is loaded or saved here.
"""

import logging
from datetime import date
from typing import Iterable, Mapping, Optional

from .availability import BLOCKED_TIME_HORIZON_DAYS
from .constraints import check_assignment
from .constraints import evaluate_assignment as _evaluate_assignment
from .recurrence import DEFAULT_HORIZON_MONTHS, expand, regenerate_occurrences
from .solver import solve_schedule
from .types import (
    AssignmentCheck,
    SchedulingResult,
    ShiftOccurrence,
    ShiftTemplate,
    StaffMember,
    Trait,
    Violation,
)

logger = logging.getLogger(__name__)


def expand_occurrences(
    template: ShiftTemplate,
    stored: Optional[Iterable[ShiftOccurrence]] = None,
    is_destructive: bool = False,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> list[ShiftOccurrence]:
    """
    Expand a shift template into dated occurrences.

    Called whenever a template is created or edited. With `stored`, the
    expansion is merged with the caller's saved occurrences: saved edits win,
    soft-deleted ones are dropped, and `is_destructive` discards them all.

    Args:
        template: The recurring shift template
        stored: Previously saved occurrences (any template; others are ignored)
        is_destructive: The edit changed timing, recurrence or traits
        horizon_months: Expansion horizon when the rule has no end date

    Returns:
        Occurrences ordered by start

    Raises:
        MalformedInputError: If the recurrence or template times are invalid
    """
    if stored is None and not is_destructive:
        return expand(template, horizon_months=horizon_months)
    return regenerate_occurrences(
        template,
        stored or (),
        is_destructive=is_destructive,
        horizon_months=horizon_months,
    )


def evaluate_assignment(
    staff: StaffMember,
    occurrence: ShiftOccurrence,
    roster: Iterable[StaffMember],
    occurrences: Iterable[ShiftOccurrence],
    proposed: Optional[Mapping[str, Iterable[str]]] = None,
    horizon_days: int = BLOCKED_TIME_HORIZON_DAYS,
) -> list[Violation]:
    """
    Violations of `staff` working `occurrence`, hard ones first.

    `proposed` overrides stored staff lists per occurrence id. Used by the
    auto-scheduler and, via `preview_assignment`, by manual assignment.
    """
    return _evaluate_assignment(
        staff, occurrence, roster, occurrences, proposed=proposed, horizon_days=horizon_days
    )


def preview_assignment(
    staff: StaffMember,
    occurrence: ShiftOccurrence,
    roster: Iterable[StaffMember],
    occurrences: Iterable[ShiftOccurrence],
    horizon_days: int = BLOCKED_TIME_HORIZON_DAYS,
) -> AssignmentCheck:
    """Advisory check before a manual staff-to-occurrence edit is committed."""
    return check_assignment(staff, occurrence, roster, occurrences, horizon_days=horizon_days)


def auto_schedule(
    week_occurrences: Iterable[ShiftOccurrence],
    roster: Iterable[StaffMember],
    traits: Iterable[Trait],
    week_start: Optional[date] = None,
    context_occurrences: Iterable[ShiftOccurrence] = (),
    horizon_days: int = BLOCKED_TIME_HORIZON_DAYS,
) -> SchedulingResult:
    """
    Fill one week of occurrences with staff.

    Returns:
        SchedulingResult containing:
        - success: False when any trait or headcount requirement is unmet
        - assignments: occurrence id -> staff ids for every week occurrence
        - warnings: soft-limit breaches and automatic removals
        - errors: unmet requirements, naming shift, date and counts

    Raises:
        MalformedInputError: If an occurrence lies outside the week, week_start
        is not a Monday, or a trait reference is dangling

    Example:
        result = auto_schedule(week_occurrences, roster, traits)

        if not result.success:
            for error in result.errors:
                print(error)
    """
    week_occurrences = list(week_occurrences)
    roster = list(roster)
    logger.info("Auto-scheduling %d occurrence(s) for %d staff", len(week_occurrences), len(roster))
    return solve_schedule(
        week_occurrences,
        roster,
        traits,
        week_start=week_start,
        context_occurrences=context_occurrences,
        horizon_days=horizon_days,
    )
