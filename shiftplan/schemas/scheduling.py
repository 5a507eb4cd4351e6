from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional

from shiftplan.services.scheduling.types import (
    BlockedTime,
    ConsecutiveRestDays,
    LimitPeriod,
    RecurrenceKind,
    RecurrenceRule,
    Requirements,
    RestDaysWithStaff,
    RestPeriod,
    Severity,
    ShiftOccurrence,
    ShiftTemplate,
    StaffConstraints,
    StaffingState,
    StaffMember,
    Trait,
    TraitRequirement,
    ViolationKind,
)


class TraitSchema(BaseModel):
    id: str
    name: str

    def to_domain(self) -> Trait:
        return Trait(id=self.id, name=self.name)


class RecurrenceRuleSchema(BaseModel):
    kind: RecurrenceKind
    interval: int = 1
    end_date: Optional[date] = None
    weekdays: list[int] = []

    def to_domain(self) -> RecurrenceRule:
        return RecurrenceRule(
            kind=self.kind,
            interval=self.interval,
            end_date=self.end_date,
            weekdays=list(self.weekdays),
        )


class TraitRequirementSchema(BaseModel):
    trait_id: str
    min_count: int = 1

    class Config:
        from_attributes = True


class RequirementsSchema(BaseModel):
    headcount: int = 1
    required_traits: list[TraitRequirementSchema] = []
    excluded_trait_ids: list[str] = []

    class Config:
        from_attributes = True

    def to_domain(self) -> Requirements:
        return Requirements(
            headcount=self.headcount,
            required_traits=[
                TraitRequirement(trait_id=r.trait_id, min_count=r.min_count)
                for r in self.required_traits
            ],
            excluded_trait_ids=list(self.excluded_trait_ids),
        )


class ShiftTemplateSchema(BaseModel):
    id: str
    name: str
    start: datetime
    end: datetime
    requirements: RequirementsSchema = RequirementsSchema()
    recurrence: Optional[RecurrenceRuleSchema] = None

    def to_domain(self) -> ShiftTemplate:
        return ShiftTemplate(
            id=self.id,
            name=self.name,
            start=self.start,
            end=self.end,
            requirements=self.requirements.to_domain(),
            recurrence=self.recurrence.to_domain() if self.recurrence else None,
        )


class ShiftOccurrenceSchema(BaseModel):
    id: str
    parent_shift_id: str
    name: str
    start: datetime
    end: datetime
    requirements: RequirementsSchema = RequirementsSchema()
    assigned_staff_ids: list[str] = []
    is_modified: bool = False
    is_deleted: bool = False
    day_adjusted: bool = False

    class Config:
        from_attributes = True

    def to_domain(self) -> ShiftOccurrence:
        return ShiftOccurrence(
            id=self.id,
            parent_shift_id=self.parent_shift_id,
            name=self.name,
            start=self.start,
            end=self.end,
            requirements=self.requirements.to_domain(),
            assigned_staff_ids=list(self.assigned_staff_ids),
            is_modified=self.is_modified,
            is_deleted=self.is_deleted,
            day_adjusted=self.day_adjusted,
        )


class BlockedTimeSchema(BaseModel):
    id: Optional[str] = None
    start: datetime
    end: datetime
    is_full_day: bool = False
    recurrence: Optional[RecurrenceRuleSchema] = None


class RestDaysWithStaffSchema(BaseModel):
    staff_id: str
    min_rest_days: int
    period: RestPeriod = RestPeriod.WEEK


class ConsecutiveRestDaysSchema(BaseModel):
    min_consecutive_days: int
    period: RestPeriod = RestPeriod.WEEK


class StaffConstraintsSchema(BaseModel):
    max_shifts_per_day: Optional[int] = None
    max_shifts_per_week: Optional[int] = None
    max_shifts_per_month: Optional[int] = None
    max_shifts_per_year: Optional[int] = None
    incompatible_with: list[str] = []
    rest_days_with_staff: list[RestDaysWithStaffSchema] = []
    consecutive_rest_days: list[ConsecutiveRestDaysSchema] = []


class StaffMemberSchema(BaseModel):
    id: str
    name: str
    trait_ids: list[str] = []
    constraints: StaffConstraintsSchema = StaffConstraintsSchema()
    blocked_times: list[BlockedTimeSchema] = []

    def to_domain(self) -> StaffMember:
        c = self.constraints
        return StaffMember(
            id=self.id,
            name=self.name,
            trait_ids=set(self.trait_ids),
            constraints=StaffConstraints(
                max_shifts_per_day=c.max_shifts_per_day,
                max_shifts_per_week=c.max_shifts_per_week,
                max_shifts_per_month=c.max_shifts_per_month,
                max_shifts_per_year=c.max_shifts_per_year,
                incompatible_with=set(c.incompatible_with),
                rest_days_with_staff=[
                    RestDaysWithStaff(staff_id=r.staff_id, min_rest_days=r.min_rest_days, period=r.period)
                    for r in c.rest_days_with_staff
                ],
                consecutive_rest_days=[
                    ConsecutiveRestDays(min_consecutive_days=r.min_consecutive_days, period=r.period)
                    for r in c.consecutive_rest_days
                ],
            ),
            blocked_times=[
                BlockedTime(
                    id=b.id,
                    start=b.start,
                    end=b.end,
                    is_full_day=b.is_full_day,
                    recurrence=b.recurrence.to_domain() if b.recurrence else None,
                )
                for b in self.blocked_times
            ],
        )


# ---- Requests ----


class ExpandOccurrencesRequest(BaseModel):
    template: ShiftTemplateSchema
    stored: Optional[list[ShiftOccurrenceSchema]] = None
    is_destructive: bool = False


class AssignmentCheckRequest(BaseModel):
    staff_id: str
    occurrence_id: str
    roster: list[StaffMemberSchema]
    occurrences: list[ShiftOccurrenceSchema]


class AutoScheduleRequest(BaseModel):
    occurrences: list[ShiftOccurrenceSchema]
    roster: list[StaffMemberSchema]
    traits: list[TraitSchema] = []
    week_start: Optional[date] = None
    context_occurrences: list[ShiftOccurrenceSchema] = []


class StaffingStatusRequest(BaseModel):
    occurrence_id: str
    roster: list[StaffMemberSchema]
    traits: list[TraitSchema] = []
    occurrences: list[ShiftOccurrenceSchema]


# ---- Responses ----


class ViolationResponse(BaseModel):
    kind: ViolationKind
    severity: Severity
    staff_id: str
    staff_name: str
    occurrence_id: str
    message: str
    period: Optional[LimitPeriod | RestPeriod] = None
    partner_id: Optional[str] = None

    class Config:
        from_attributes = True


class AssignmentCheckResponse(BaseModel):
    staff_id: str
    occurrence_id: str
    has_hard_violations: bool
    messages: list[str]
    violations: list[ViolationResponse]

    class Config:
        from_attributes = True


class SchedulingResultResponse(BaseModel):
    success: bool
    assignments: dict[str, list[str]]
    warnings: list[str]
    errors: list[str]

    class Config:
        from_attributes = True


class TraitShortfallResponse(BaseModel):
    trait_id: str
    trait_name: str
    required: int
    assigned: int

    class Config:
        from_attributes = True


class StaffingStatusResponse(BaseModel):
    state: StaffingState
    message: str
    assigned: int
    required: int
    missing_traits: list[TraitShortfallResponse]
    violations: list[ViolationResponse]

    class Config:
        from_attributes = True
