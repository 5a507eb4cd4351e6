"""
Weekly auto-scheduler using greedy multi-pass filling.

Strategy:
1. Revalidate existing assignments, dropping staff who now hit a hard block
2. Per occurrence (chronological): fill required traits from trait holders
3. Fill remaining headcount from the whole roster
4. Report soft-limit breaches as warnings and unmet requirements as errors
"""

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

from .availability import BLOCKED_TIME_HORIZON_DAYS
from .constraints import (
    counted_headcount,
    describe_occurrence,
    evaluate_assignment,
    find_trait_shortfalls,
    has_excluded_trait,
    validate_trait_references,
)
from .exceptions import MalformedInputError
from .types import (
    SchedulingResult,
    Severity,
    ShiftOccurrence,
    StaffMember,
    Trait,
    Violation,
    ViolationKind,
)

logger = logging.getLogger(__name__)


BASE_PRIORITY = 100
TRAIT_MATCH_BONUS = 50
WEEKLY_LOAD_PENALTY = 5
UNBOUNDED_WEEKLY_FLEX = 7  # weekly max credited when none is configured

# hard violations that remove a pre-existing assignment
REVALIDATION_KINDS = {ViolationKind.BLOCKED_TIME, ViolationKind.DAILY_LIMIT}


class ScheduleSolver:
    """
    Greedy auto-scheduler for one week of occurrences.
    """

    def __init__(
        self,
        week_occurrences: Iterable[ShiftOccurrence],
        roster: Iterable[StaffMember],
        traits: Iterable[Trait],
        week_start: Optional[date] = None,
        context_occurrences: Iterable[ShiftOccurrence] = (),
        horizon_days: int = BLOCKED_TIME_HORIZON_DAYS,
    ):
        self.roster = list(roster)
        self.traits = list(traits)
        self.horizon_days = horizon_days
        self.staff_by_id = {s.id: s for s in self.roster}

        occurrences = [occ for occ in week_occurrences if not occ.is_deleted]
        self.week_start = self._resolve_week_start(occurrences, week_start)
        self.week_end = self.week_start + timedelta(days=7)
        self._validate(occurrences)

        self.occurrences = sorted(occurrences, key=lambda occ: (occ.start, occ.id))
        week_ids = {occ.id for occ in self.occurrences}
        self.context_occurrences = [
            occ for occ in context_occurrences
            if not occ.is_deleted and occ.id not in week_ids
        ]
        self.all_occurrences = self.occurrences + self.context_occurrences

        self.assignments: dict[str, list[str]] = {occ.id: [] for occ in self.occurrences}
        self.warnings: list[str] = []
        self.errors: list[str] = []

    @staticmethod
    def _resolve_week_start(occurrences: list[ShiftOccurrence], week_start: Optional[date]) -> date:
        if week_start is not None:
            if isinstance(week_start, datetime):
                week_start = week_start.date()
            if week_start.weekday() != 0:
                raise MalformedInputError(f"week_start must be a Monday, got {week_start.isoformat()}")
            return week_start
        if not occurrences:
            raise MalformedInputError("week_start is required when there are no occurrences to schedule")
        first = min(occ.start for occ in occurrences).date()
        return first - timedelta(days=first.weekday())

    def _validate(self, occurrences: list[ShiftOccurrence]):
        start = datetime.combine(self.week_start, datetime.min.time())
        end = datetime.combine(self.week_end, datetime.min.time())
        for occ in occurrences:
            if not start <= occ.start < end:
                raise MalformedInputError(
                    f"Occurrence {occ.id} starts {occ.start.isoformat()}, "
                    f"outside the week of {self.week_start.isoformat()}"
                )
            validate_trait_references(occ, self.traits)

    def solve(self) -> SchedulingResult:
        """
        Main solving method.

        Returns:
            SchedulingResult with the assignment map, warnings and errors
        """
        #1: Keep existing assignments that are still legal
        self._revalidate_existing()
        #2-3: Fill each occurrence, traits before headcount
        for occurrence in self.occurrences:
            self._fill_occurrence(occurrence)
        #4: Result
        return self._build_result()

    def _evaluate(self, staff: StaffMember, occurrence: ShiftOccurrence) -> list[Violation]:
        return evaluate_assignment(
            staff,
            occurrence,
            self.roster,
            self.all_occurrences,
            proposed=self.assignments,
            horizon_days=self.horizon_days,
        )

    def _revalidate_existing(self):
        """1: Rebuild the assignment map in order, dropping hard-blocked staff."""
        for occurrence in self.occurrences:
            for staff_id in occurrence.assigned_staff_ids:
                if staff_id in self.assignments[occurrence.id]:
                    continue
                staff = self.staff_by_id.get(staff_id)
                if staff is None:
                    self._warn(
                        f"Removed unknown staff {staff_id} from shift {describe_occurrence(occurrence)}"
                    )
                    continue

                blocking = [
                    v for v in self._evaluate(staff, occurrence)
                    if v.kind in REVALIDATION_KINDS
                ]
                if blocking:
                    reasons = ", ".join(v.message for v in blocking)
                    self._warn(
                        f"Removed {staff.name} from shift {describe_occurrence(occurrence)} due to: {reasons}"
                    )
                    continue
                self.assignments[occurrence.id].append(staff_id)

    def _fill_occurrence(self, occurrence: ShiftOccurrence):
        """2-3: Trait phase then headcount phase for a single occurrence."""
        requirements = occurrence.requirements
        traits_met = True

        for requirement in requirements.required_traits:
            shortfall = self._trait_shortfall(occurrence, requirement.trait_id)
            if shortfall is None:
                continue

            added = self._fill_seats(
                occurrence,
                shortfall.missing,
                lambda staff: requirement.trait_id in staff.trait_ids,
            )
            if added < shortfall.missing:
                traits_met = False
                have = shortfall.assigned + added
                self.errors.append(
                    f"Shift {describe_occurrence(occurrence)} requires {requirement.min_count} staff "
                    f'with "{shortfall.trait_name}" trait, but only {have} could be assigned '
                    f"({requirement.min_count - have} short)"
                )

        if not traits_met:
            return

        open_seats = requirements.headcount - self._headcount(occurrence)
        if open_seats > 0:
            self._fill_seats(occurrence, open_seats, lambda staff: True)

        assigned = self._headcount(occurrence)
        if assigned < requirements.headcount:
            self.errors.append(
                f"Could not fully staff shift {describe_occurrence(occurrence)} - "
                f"assigned {assigned}/{requirements.headcount} staff"
            )

    def _trait_shortfall(self, occurrence: ShiftOccurrence, trait_id: str):
        for shortfall in find_trait_shortfalls(
            occurrence, self.roster, self.traits, assigned=self.assignments[occurrence.id]
        ):
            if shortfall.trait_id == trait_id:
                return shortfall
        return None

    def _headcount(self, occurrence: ShiftOccurrence) -> int:
        return counted_headcount(self.assignments[occurrence.id], self.staff_by_id, occurrence.requirements)

    def _fill_seats(
        self,
        occurrence: ShiftOccurrence,
        seats: int,
        eligible: Callable[[StaffMember], bool],
    ) -> int:
        """Assign up to `seats` ranked candidates. Returns how many were placed."""
        added = 0
        for staff in self._rank_candidates(occurrence, eligible):
            if added >= seats:
                break
            # re-evaluated: earlier picks change incompatibility and counts
            violations = self._evaluate(staff, occurrence)
            if any(v.severity == Severity.HARD for v in violations):
                logger.debug("Skipping %s for %s: hard violation", staff.id, occurrence.id)
                continue
            self._assign(staff, occurrence, violations)
            added += 1
        return added

    def _rank_candidates(
        self,
        occurrence: ShiftOccurrence,
        eligible: Callable[[StaffMember], bool],
    ) -> list[StaffMember]:
        """Eligible staff, highest priority first; ties favour violation-free candidates."""
        current = self.assignments[occurrence.id]
        scored: list[tuple[float, bool, StaffMember]] = []
        for staff in self.roster:
            if staff.id in current:
                continue
            if has_excluded_trait(staff, occurrence.requirements):
                continue
            if not eligible(staff):
                continue
            has_violations = bool(self._evaluate(staff, occurrence))
            scored.append((self._score_candidate(staff, occurrence), has_violations, staff))

        scored.sort(key=lambda item: (-item[0], item[1]))
        return [staff for _, _, staff in scored]

    def _score_candidate(self, staff: StaffMember, occurrence: ShiftOccurrence) -> float:
        """
        Score a candidate for an occurrence. Higher = better.

        Factors:
        - Bonus for holding a trait the occurrence still lacks
        - Penalty per assignment already held this week
        - Bonus equal to the weekly cap (flexible staff preferred)
        """
        score = BASE_PRIORITY

        outstanding = {
            s.trait_id for s in find_trait_shortfalls(
                occurrence, self.roster, assigned=self.assignments[occurrence.id]
            )
        }
        if outstanding & staff.trait_ids:
            score += TRAIT_MATCH_BONUS

        week_load = sum(1 for staff_ids in self.assignments.values() if staff.id in staff_ids)
        score -= week_load * WEEKLY_LOAD_PENALTY

        weekly_max = staff.constraints.max_shifts_per_week
        score += UNBOUNDED_WEEKLY_FLEX if weekly_max is None else weekly_max

        return score

    def _assign(self, staff: StaffMember, occurrence: ShiftOccurrence, violations: list[Violation]):
        """Add a staff member to an occurrence and surface soft breaches."""
        self.assignments[occurrence.id].append(staff.id)
        logger.debug("Assigned %s to %s", staff.id, occurrence.id)
        for violation in violations:
            if violation.severity == Severity.SOFT:
                self.warnings.append(f"{violation.message} for shift {describe_occurrence(occurrence)}")

    def _warn(self, message: str):
        logger.warning(message)
        self.warnings.append(message)

    def _build_result(self) -> SchedulingResult:
        result = SchedulingResult(
            success=not self.errors,
            assignments={occ_id: list(staff_ids) for occ_id, staff_ids in self.assignments.items()},
            warnings=list(self.warnings),
            errors=list(self.errors),
        )
        logger.info(
            "Scheduled week of %s: %d occurrence(s), %d warning(s), %d error(s)",
            self.week_start.isoformat(), len(self.occurrences), len(result.warnings), len(result.errors),
        )
        return result


def solve_schedule(
    week_occurrences: Iterable[ShiftOccurrence],
    roster: Iterable[StaffMember],
    traits: Iterable[Trait],
    week_start: Optional[date] = None,
    context_occurrences: Iterable[ShiftOccurrence] = (),
    horizon_days: int = BLOCKED_TIME_HORIZON_DAYS,
) -> SchedulingResult:
    """
    Main entry point for weekly auto-scheduling.

    Raises:
        MalformedInputError: occurrence outside the week, week_start not a
        Monday, or a reference to an unknown trait
    """
    solver = ScheduleSolver(
        week_occurrences,
        roster,
        traits,
        week_start=week_start,
        context_occurrences=context_occurrences,
        horizon_days=horizon_days,
    )
    return solver.solve()


def apply_assignments(
    occurrences: Iterable[ShiftOccurrence],
    assignments: dict[str, list[str]],
) -> list[ShiftOccurrence]:
    """
    Copies of `occurrences` carrying the scheduled staff lists. Occurrences
    whose staff actually changed are marked modified.
    """
    updated = []
    for occ in occurrences:
        new_staff = assignments.get(occ.id)
        if new_staff is None or sorted(new_staff) == sorted(occ.assigned_staff_ids):
            updated.append(occ)
            continue
        updated.append(replace(occ, assigned_staff_ids=list(new_staff), is_modified=True))
    return updated
