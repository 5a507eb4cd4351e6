"""
Scheduling service package.

Usage:
    from shiftplan.services.scheduling import expand_occurrences, auto_schedule

    # Expand every template into its dated occurrences
    occurrences = [occ for t in templates for occ in expand_occurrences(t)]

    # Fill one week
    result = auto_schedule(week_occurrences, roster, traits)

    # Or preview a single manual assignment
    from shiftplan.services.scheduling import preview_assignment

    check = preview_assignment(staff, occurrence, roster, occurrences)
"""

from .types import (
    AssignmentCheck,
    BlockedTime,
    BlockedTimeViolation,
    ConsecutiveRestDays,
    ConsecutiveRestDaysViolation,
    IncompatibleStaffViolation,
    LimitPeriod,
    RecurrenceKind,
    RecurrenceRule,
    Requirements,
    RestDaysWithStaff,
    RestDaysWithStaffViolation,
    RestPeriod,
    SchedulingResult,
    Severity,
    ShiftLimitViolation,
    ShiftOccurrence,
    ShiftTemplate,
    StaffConstraints,
    StaffingState,
    StaffingStatus,
    StaffMember,
    Trait,
    TraitRequirement,
    TraitShortfall,
    Violation,
    ViolationKind,
)
from .exceptions import MalformedInputError
from .recurrence import expand, expand_all, is_destructive_change, regenerate_occurrences
from .constraints import assess_staffing, check_assignment, find_trait_shortfalls
from .generator import auto_schedule, evaluate_assignment, expand_occurrences, preview_assignment
from .solver import ScheduleSolver, apply_assignments, solve_schedule

__all__ = [
    # Types
    "AssignmentCheck",
    "BlockedTime",
    "BlockedTimeViolation",
    "ConsecutiveRestDays",
    "ConsecutiveRestDaysViolation",
    "IncompatibleStaffViolation",
    "LimitPeriod",
    "RecurrenceKind",
    "RecurrenceRule",
    "Requirements",
    "RestDaysWithStaff",
    "RestDaysWithStaffViolation",
    "RestPeriod",
    "SchedulingResult",
    "Severity",
    "ShiftLimitViolation",
    "ShiftOccurrence",
    "ShiftTemplate",
    "StaffConstraints",
    "StaffingState",
    "StaffingStatus",
    "StaffMember",
    "Trait",
    "TraitRequirement",
    "TraitShortfall",
    "Violation",
    "ViolationKind",
    "MalformedInputError",
    # Main entry points
    "expand_occurrences",
    "evaluate_assignment",
    "preview_assignment",
    "auto_schedule",
    # Lower-level functions
    "expand",
    "expand_all",
    "regenerate_occurrences",
    "is_destructive_change",
    "check_assignment",
    "find_trait_shortfalls",
    "assess_staffing",
    "solve_schedule",
    "apply_assignments",
    "ScheduleSolver",
]
