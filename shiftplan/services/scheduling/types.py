"""
Internal data types for scheduling logic.
Plain value objects: the core never knows how they were loaded or will be saved.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union


class RecurrenceKind(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RestPeriod(str, Enum):
    WEEK = "week"
    MONTH = "month"


class LimitPeriod(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class Severity(str, Enum):
    HARD = "hard"
    SOFT = "soft"


class ViolationKind(str, Enum):
    BLOCKED_TIME = "blocked_time"
    INCOMPATIBLE_STAFF = "incompatible_staff"
    DAILY_LIMIT = "daily_shift_limit"
    WEEKLY_LIMIT = "weekly_shift_limit"
    MONTHLY_LIMIT = "monthly_shift_limit"
    YEARLY_LIMIT = "yearly_shift_limit"
    REST_DAYS_WITH_STAFF = "rest_days_with_staff"
    CONSECUTIVE_REST_DAYS = "consecutive_rest_days"


class StaffingState(str, Enum):
    NOT_STAFFED = "not_staffed"
    UNDERSTAFFED = "understaffed"
    CONSTRAINT_VIOLATION = "constraint_violation"
    OVERSTAFFED = "overstaffed"
    PROPERLY_STAFFED = "properly_staffed"


@dataclass
class Trait:
    id: str
    name: str


@dataclass
class RecurrenceRule:
    kind: RecurrenceKind
    interval: int = 1
    end_date: Optional[date] = None  # inclusive
    weekdays: list[int] = field(default_factory=list)  # 0=Sunday .. 6=Saturday, weekly only


@dataclass
class TraitRequirement:
    trait_id: str
    min_count: int


@dataclass
class Requirements:
    headcount: int = 1
    required_traits: list[TraitRequirement] = field(default_factory=list)
    excluded_trait_ids: list[str] = field(default_factory=list)


@dataclass
class ShiftTemplate:
    id: str
    name: str
    start: datetime
    end: datetime
    requirements: Requirements = field(default_factory=Requirements)
    recurrence: Optional[RecurrenceRule] = None

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass
class ShiftOccurrence:
    id: str
    parent_shift_id: str
    name: str
    start: datetime
    end: datetime
    requirements: Requirements = field(default_factory=Requirements)
    assigned_staff_ids: list[str] = field(default_factory=list)
    is_modified: bool = False
    is_deleted: bool = False
    day_adjusted: bool = False  # monthly recurrence clamped to month end

    @property
    def day(self) -> date:
        return self.start.date()


@dataclass
class BlockedTime:
    start: datetime
    end: datetime
    is_full_day: bool = False
    recurrence: Optional[RecurrenceRule] = None
    id: Optional[str] = None


@dataclass
class RestDaysWithStaff:
    staff_id: str
    min_rest_days: int
    period: RestPeriod = RestPeriod.WEEK


@dataclass
class ConsecutiveRestDays:
    min_consecutive_days: int
    period: RestPeriod = RestPeriod.WEEK


@dataclass
class StaffConstraints:
    max_shifts_per_day: Optional[int] = None  # None = default of 1
    max_shifts_per_week: Optional[int] = None  # None = unbounded
    max_shifts_per_month: Optional[int] = None
    max_shifts_per_year: Optional[int] = None
    incompatible_with: set[str] = field(default_factory=set)
    rest_days_with_staff: list[RestDaysWithStaff] = field(default_factory=list)
    consecutive_rest_days: list[ConsecutiveRestDays] = field(default_factory=list)


@dataclass
class StaffMember:
    id: str
    name: str
    trait_ids: set[str] = field(default_factory=set)
    constraints: StaffConstraints = field(default_factory=StaffConstraints)
    blocked_times: list[BlockedTime] = field(default_factory=list)


# ---- Violations ---------------------------------------------------------

_TIME_FMT = "%Y-%m-%d %H:%M"

_LIMIT_KINDS = {
    LimitPeriod.DAY: ViolationKind.DAILY_LIMIT,
    LimitPeriod.WEEK: ViolationKind.WEEKLY_LIMIT,
    LimitPeriod.MONTH: ViolationKind.MONTHLY_LIMIT,
    LimitPeriod.YEAR: ViolationKind.YEARLY_LIMIT,
}

_LIMIT_ADJECTIVES = {
    LimitPeriod.DAY: "daily",
    LimitPeriod.WEEK: "weekly",
    LimitPeriod.MONTH: "monthly",
    LimitPeriod.YEAR: "yearly",
}


@dataclass(frozen=True)
class BlockedTimeViolation:
    staff_id: str
    staff_name: str
    occurrence_id: str
    blocked_start: datetime
    blocked_end: datetime
    kind: ViolationKind = ViolationKind.BLOCKED_TIME
    severity: Severity = Severity.HARD

    @property
    def message(self) -> str:
        return (
            f"{self.staff_name} has blocked time from "
            f"{self.blocked_start.strftime(_TIME_FMT)} to {self.blocked_end.strftime(_TIME_FMT)}"
        )


@dataclass(frozen=True)
class IncompatibleStaffViolation:
    staff_id: str
    staff_name: str
    occurrence_id: str
    partner_id: str
    partner_name: str
    kind: ViolationKind = ViolationKind.INCOMPATIBLE_STAFF
    severity: Severity = Severity.HARD

    @property
    def message(self) -> str:
        return f"{self.staff_name} cannot work with {self.partner_name}"


@dataclass(frozen=True)
class ShiftLimitViolation:
    staff_id: str
    staff_name: str
    occurrence_id: str
    period: LimitPeriod
    count: int
    limit: int
    period_start: date

    @property
    def kind(self) -> ViolationKind:
        return _LIMIT_KINDS[self.period]

    @property
    def severity(self) -> Severity:
        # only the daily cap blocks auto-assignment
        return Severity.HARD if self.period == LimitPeriod.DAY else Severity.SOFT

    @property
    def period_label(self) -> str:
        if self.period == LimitPeriod.DAY:
            return f"on {self.period_start.isoformat()}"
        if self.period == LimitPeriod.WEEK:
            return f"in week of {self.period_start.isoformat()}"
        if self.period == LimitPeriod.MONTH:
            return f"in {self.period_start.strftime('%B %Y')}"
        return f"in {self.period_start.year}"

    @property
    def message(self) -> str:
        return (
            f"{self.staff_name} exceeds {_LIMIT_ADJECTIVES[self.period]} limit "
            f"({self.count}/{self.limit} shifts {self.period_label})"
        )


@dataclass(frozen=True)
class RestDaysWithStaffViolation:
    staff_id: str
    staff_name: str
    occurrence_id: str
    partner_id: str
    partner_name: str
    rest_days: int
    required: int
    period: RestPeriod
    kind: ViolationKind = ViolationKind.REST_DAYS_WITH_STAFF
    severity: Severity = Severity.SOFT

    @property
    def message(self) -> str:
        return (
            f"{self.staff_name} and {self.partner_name} would share only {self.rest_days} "
            f"rest day(s) this {self.period.value} (minimum {self.required})"
        )


@dataclass(frozen=True)
class ConsecutiveRestDaysViolation:
    staff_id: str
    staff_name: str
    occurrence_id: str
    longest_rest: int
    required: int
    period: RestPeriod
    kind: ViolationKind = ViolationKind.CONSECUTIVE_REST_DAYS
    severity: Severity = Severity.SOFT

    @property
    def message(self) -> str:
        return (
            f"{self.staff_name} would have at most {self.longest_rest} consecutive "
            f"rest day(s) this {self.period.value} (minimum {self.required})"
        )


Violation = Union[
    BlockedTimeViolation,
    IncompatibleStaffViolation,
    ShiftLimitViolation,
    RestDaysWithStaffViolation,
    ConsecutiveRestDaysViolation,
]


@dataclass(frozen=True)
class TraitShortfall:
    """Occurrence-level gap: fewer assigned staff hold the trait than required."""
    trait_id: str
    trait_name: str
    required: int
    assigned: int

    @property
    def missing(self) -> int:
        return self.required - self.assigned


@dataclass
class AssignmentCheck:
    """Advisory preview of a single manual assignment. Nothing here blocks the edit."""
    staff_id: str
    occurrence_id: str
    violations: list[Violation] = field(default_factory=list)

    @property
    def has_hard_violations(self) -> bool:
        return any(v.severity == Severity.HARD for v in self.violations)

    @property
    def messages(self) -> list[str]:
        return [v.message for v in self.violations]


@dataclass
class StaffingStatus:
    state: StaffingState
    message: str
    assigned: int
    required: int
    missing_traits: list[TraitShortfall] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)


@dataclass
class SchedulingResult:
    """Output of the auto-scheduler."""
    success: bool
    assignments: dict[str, list[str]] = field(default_factory=dict)  # occurrence_id -> staff ids
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
