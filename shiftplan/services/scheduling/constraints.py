"""
Constraint checking for staff assignments.
Per-staff rules (blocked time, incompatibility, shift caps, rest days) and
occurrence-level trait requirements.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Mapping, Optional

from .availability import (
    BLOCKED_TIME_HORIZON_DAYS,
    assignment_map,
    count_assignments_in_window,
    find_blocked_conflicts,
    longest_rest_run,
    period_bounds,
    work_days_in_window,
)
from .exceptions import MalformedInputError
from .types import (
    AssignmentCheck,
    BlockedTimeViolation,
    ConsecutiveRestDaysViolation,
    IncompatibleStaffViolation,
    LimitPeriod,
    Requirements,
    RestDaysWithStaffViolation,
    Severity,
    ShiftLimitViolation,
    ShiftOccurrence,
    StaffingState,
    StaffingStatus,
    StaffMember,
    Trait,
    TraitShortfall,
    Violation,
)

logger = logging.getLogger(__name__)


DEFAULT_MAX_SHIFTS_PER_DAY = 1


def are_incompatible(a: StaffMember, b: StaffMember) -> bool:
    """Incompatibility holds if either side lists the other."""
    return b.id in a.constraints.incompatible_with or a.id in b.constraints.incompatible_with


def has_excluded_trait(staff: StaffMember, requirements: Requirements) -> bool:
    return any(trait_id in staff.trait_ids for trait_id in requirements.excluded_trait_ids)


def shift_limit(staff: StaffMember, period: LimitPeriod) -> Optional[int]:
    """Configured cap for a period. Days default to 1, other periods are unbounded when unset."""
    constraints = staff.constraints
    if period == LimitPeriod.DAY:
        if constraints.max_shifts_per_day is None:
            return DEFAULT_MAX_SHIFTS_PER_DAY
        return constraints.max_shifts_per_day
    if period == LimitPeriod.WEEK:
        return constraints.max_shifts_per_week
    if period == LimitPeriod.MONTH:
        return constraints.max_shifts_per_month
    return constraints.max_shifts_per_year


def validate_trait_references(occurrence: ShiftOccurrence, traits: Iterable[Trait]) -> None:
    """Raise if the occurrence requires or excludes a trait that does not exist."""
    known = {t.id for t in traits}
    referenced = [r.trait_id for r in occurrence.requirements.required_traits]
    referenced.extend(occurrence.requirements.excluded_trait_ids)
    for trait_id in referenced:
        if trait_id not in known:
            raise MalformedInputError(
                f"Shift '{occurrence.name}' ({occurrence.id}) references unknown trait {trait_id!r}"
            )


def _check_blocked_time(
    staff: StaffMember,
    occurrence: ShiftOccurrence,
    horizon_days: int,
) -> list[Violation]:
    return [
        BlockedTimeViolation(
            staff_id=staff.id,
            staff_name=staff.name,
            occurrence_id=occurrence.id,
            blocked_start=blocked_start,
            blocked_end=blocked_end,
        )
        for blocked_start, blocked_end in find_blocked_conflicts(
            staff, occurrence.start, occurrence.end, horizon_days
        )
    ]


def _check_incompatible(
    staff: StaffMember,
    occurrence: ShiftOccurrence,
    staff_by_id: Mapping[str, StaffMember],
    co_workers: list[str],
) -> list[Violation]:
    violations = []
    for partner_id in co_workers:
        if partner_id == staff.id:
            continue
        partner = staff_by_id.get(partner_id)
        if partner is None:
            # unknown partner: only this side's list can be checked
            if partner_id in staff.constraints.incompatible_with:
                violations.append(IncompatibleStaffViolation(
                    staff_id=staff.id, staff_name=staff.name, occurrence_id=occurrence.id,
                    partner_id=partner_id, partner_name=partner_id,
                ))
            continue
        if are_incompatible(staff, partner):
            violations.append(IncompatibleStaffViolation(
                staff_id=staff.id, staff_name=staff.name, occurrence_id=occurrence.id,
                partner_id=partner.id, partner_name=partner.name,
            ))
    return violations


def _check_shift_limits(
    staff: StaffMember,
    occurrence: ShiftOccurrence,
    occurrences: list[ShiftOccurrence],
    assigned: Mapping[str, list[str]],
) -> list[Violation]:
    violations = []
    for period in (LimitPeriod.DAY, LimitPeriod.WEEK, LimitPeriod.MONTH, LimitPeriod.YEAR):
        limit = shift_limit(staff, period)
        if limit is None:
            continue
        window_start, window_end = period_bounds(occurrence.start, period)
        count = count_assignments_in_window(staff.id, occurrences, assigned, window_start, window_end)
        if count > limit:
            violations.append(ShiftLimitViolation(
                staff_id=staff.id,
                staff_name=staff.name,
                occurrence_id=occurrence.id,
                period=period,
                count=count,
                limit=limit,
                period_start=window_start.date(),
            ))
    return violations


def _check_rest_days_with_staff(
    staff: StaffMember,
    occurrence: ShiftOccurrence,
    staff_by_id: Mapping[str, StaffMember],
    occurrences: list[ShiftOccurrence],
    assigned: Mapping[str, list[str]],
) -> list[Violation]:
    violations = []
    for rule in staff.constraints.rest_days_with_staff:
        partner = staff_by_id.get(rule.staff_id)
        if partner is None:
            continue
        window_start, window_end = period_bounds(occurrence.start, rule.period)
        days_in_period = (window_end - window_start).days
        busy = work_days_in_window({staff.id, partner.id}, occurrences, assigned, window_start, window_end)
        rest_days = days_in_period - len(busy)
        if rest_days < rule.min_rest_days:
            violations.append(RestDaysWithStaffViolation(
                staff_id=staff.id,
                staff_name=staff.name,
                occurrence_id=occurrence.id,
                partner_id=partner.id,
                partner_name=partner.name,
                rest_days=rest_days,
                required=rule.min_rest_days,
                period=rule.period,
            ))
    return violations


def _check_consecutive_rest_days(
    staff: StaffMember,
    occurrence: ShiftOccurrence,
    occurrences: list[ShiftOccurrence],
    assigned: Mapping[str, list[str]],
) -> list[Violation]:
    violations = []
    for rule in staff.constraints.consecutive_rest_days:
        window_start, window_end = period_bounds(occurrence.start, rule.period)
        busy = work_days_in_window({staff.id}, occurrences, assigned, window_start, window_end)
        longest = longest_rest_run(busy, window_start, window_end)
        if longest < rule.min_consecutive_days:
            violations.append(ConsecutiveRestDaysViolation(
                staff_id=staff.id,
                staff_name=staff.name,
                occurrence_id=occurrence.id,
                longest_rest=longest,
                required=rule.min_consecutive_days,
                period=rule.period,
            ))
    return violations


def evaluate_assignment(
    staff: StaffMember,
    occurrence: ShiftOccurrence,
    roster: Iterable[StaffMember],
    occurrences: Iterable[ShiftOccurrence],
    proposed: Optional[Mapping[str, Iterable[str]]] = None,
    horizon_days: int = BLOCKED_TIME_HORIZON_DAYS,
) -> list[Violation]:
    """
    Evaluate `staff` working `occurrence`.

    `proposed` maps occurrence ids to staff lists that replace the stored
    `assigned_staff_ids` (the in-progress assignment map of a scheduling pass).
    The staff member always counts as assigned to `occurrence`, so counts
    include the occurrence under evaluation.

    Returns:
        Violations, hard ones first.
    """
    pool = [occ for occ in occurrences if not occ.is_deleted and occ.id != occurrence.id]
    pool.append(replace(occurrence, is_deleted=False) if occurrence.is_deleted else occurrence)

    assigned = assignment_map(pool, proposed)
    if staff.id not in assigned[occurrence.id]:
        assigned[occurrence.id].append(staff.id)

    staff_by_id = {s.id: s for s in roster}

    violations: list[Violation] = []
    violations.extend(_check_blocked_time(staff, occurrence, horizon_days))
    violations.extend(_check_incompatible(staff, occurrence, staff_by_id, assigned[occurrence.id]))
    violations.extend(_check_shift_limits(staff, occurrence, pool, assigned))
    violations.extend(_check_rest_days_with_staff(staff, occurrence, staff_by_id, pool, assigned))
    violations.extend(_check_consecutive_rest_days(staff, occurrence, pool, assigned))

    if violations:
        logger.debug(
            "%s on %s: %s",
            staff.id, occurrence.id, ", ".join(v.kind.value for v in violations),
        )
    return sorted(violations, key=lambda v: v.severity != Severity.HARD)


def hard_violations(violations: Iterable[Violation]) -> list[Violation]:
    return [v for v in violations if v.severity == Severity.HARD]


def soft_violations(violations: Iterable[Violation]) -> list[Violation]:
    return [v for v in violations if v.severity == Severity.SOFT]


def check_assignment(
    staff: StaffMember,
    occurrence: ShiftOccurrence,
    roster: Iterable[StaffMember],
    occurrences: Iterable[ShiftOccurrence],
    horizon_days: int = BLOCKED_TIME_HORIZON_DAYS,
) -> AssignmentCheck:
    """
    Preview a manual assignment before it is committed.
    Every violation is advisory here; the caller decides whether to proceed.
    """
    proposed = {occurrence.id: list(occurrence.assigned_staff_ids) + [staff.id]}
    violations = evaluate_assignment(
        staff, occurrence, roster, occurrences, proposed=proposed, horizon_days=horizon_days
    )
    return AssignmentCheck(staff_id=staff.id, occurrence_id=occurrence.id, violations=violations)


def find_trait_shortfalls(
    occurrence: ShiftOccurrence,
    roster: Iterable[StaffMember],
    traits: Optional[Iterable[Trait]] = None,
    assigned: Optional[Iterable[str]] = None,
) -> list[TraitShortfall]:
    """
    Required traits held by fewer assigned staff than their minimum.

    `assigned` overrides the occurrence's stored staff list. When `traits`
    is given, unknown trait ids raise MalformedInputError.
    """
    trait_names: dict[str, str] = {}
    if traits is not None:
        traits = list(traits)
        validate_trait_references(occurrence, traits)
        trait_names = {t.id: t.name for t in traits}

    staff_by_id = {s.id: s for s in roster}
    staff_ids = list(occurrence.assigned_staff_ids if assigned is None else assigned)
    members = [staff_by_id[sid] for sid in staff_ids if sid in staff_by_id]

    shortfalls = []
    for requirement in occurrence.requirements.required_traits:
        holders = sum(1 for s in members if requirement.trait_id in s.trait_ids)
        if holders < requirement.min_count:
            shortfalls.append(TraitShortfall(
                trait_id=requirement.trait_id,
                trait_name=trait_names.get(requirement.trait_id, requirement.trait_id),
                required=requirement.min_count,
                assigned=holders,
            ))
    return shortfalls


def counted_headcount(
    staff_ids: Iterable[str],
    staff_by_id: Mapping[str, StaffMember],
    requirements: Requirements,
) -> int:
    """Assigned staff that count toward headcount (excluded-trait holders do not)."""
    count = 0
    for staff_id in staff_ids:
        staff = staff_by_id.get(staff_id)
        if staff is not None and has_excluded_trait(staff, requirements):
            continue
        count += 1
    return count


def _people(count: int) -> str:
    return "person" if count == 1 else "people"


def assess_staffing(
    occurrence: ShiftOccurrence,
    roster: Iterable[StaffMember],
    traits: Iterable[Trait],
    occurrences: Optional[Iterable[ShiftOccurrence]] = None,
    horizon_days: int = BLOCKED_TIME_HORIZON_DAYS,
) -> StaffingStatus:
    """
    Staffing status of one occurrence, checked in order: no staff, missing
    traits, constraint violations, then headcount.
    """
    roster = list(roster)
    staff_by_id = {s.id: s for s in roster}
    required = occurrence.requirements.headcount
    assigned_ids = list(occurrence.assigned_staff_ids)

    if not assigned_ids:
        return StaffingStatus(
            state=StaffingState.NOT_STAFFED,
            message=f"This shift is not staffed (needs {required} {_people(required)})",
            assigned=0,
            required=required,
        )

    shortfalls = find_trait_shortfalls(occurrence, roster, traits)
    counted = counted_headcount(assigned_ids, staff_by_id, occurrence.requirements)
    if shortfalls:
        missing = ", ".join(f"{s.missing} more with {s.trait_name}" for s in shortfalls)
        return StaffingStatus(
            state=StaffingState.UNDERSTAFFED,
            message=f"This shift is missing: {missing}",
            assigned=counted,
            required=required,
            missing_traits=shortfalls,
        )

    pool = list(occurrences) if occurrences is not None else [occurrence]
    violations: list[Violation] = []
    for staff_id in assigned_ids:
        staff = staff_by_id.get(staff_id)
        if staff is None:
            continue
        violations.extend(evaluate_assignment(staff, occurrence, roster, pool, horizon_days=horizon_days))
    if violations:
        return StaffingStatus(
            state=StaffingState.CONSTRAINT_VIOLATION,
            message="This shift violates staff constraints",
            assigned=counted,
            required=required,
            violations=violations,
        )

    if counted < required:
        missing = required - counted
        return StaffingStatus(
            state=StaffingState.UNDERSTAFFED,
            message=f"This shift is understaffed ({counted}/{required}, missing {missing} {_people(missing)})",
            assigned=counted,
            required=required,
        )
    if counted > required:
        extra = counted - required
        return StaffingStatus(
            state=StaffingState.OVERSTAFFED,
            message=f"This shift is overstaffed ({counted}/{required}, {extra} extra {_people(extra)})",
            assigned=counted,
            required=required,
        )
    return StaffingStatus(
        state=StaffingState.PROPERLY_STAFFED,
        message="This shift is properly staffed",
        assigned=counted,
        required=required,
    )


def describe_occurrence(occurrence: ShiftOccurrence) -> str:
    return f'"{occurrence.name}" on {format_start(occurrence.start)}'


def format_start(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M")
