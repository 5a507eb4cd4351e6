from typing import List
from fastapi import APIRouter, Depends, HTTPException

from shiftplan.api.deps import get_settings
from shiftplan.core.config import Settings
from shiftplan.schemas.scheduling import (
    AssignmentCheckRequest,
    AssignmentCheckResponse,
    AutoScheduleRequest,
    ExpandOccurrencesRequest,
    SchedulingResultResponse,
    ShiftOccurrenceSchema,
    StaffingStatusRequest,
    StaffingStatusResponse,
)
from shiftplan.services.scheduling import (
    MalformedInputError,
    assess_staffing,
    auto_schedule,
    expand_occurrences,
    preview_assignment,
)

router = APIRouter(prefix="/scheduling", tags=["scheduling"])


def _unprocessable(exc: MalformedInputError) -> HTTPException:
    return HTTPException(status_code=422, detail=str(exc))


@router.post("/occurrences/expand", response_model=List[ShiftOccurrenceSchema])
def expand_template(
    payload: ExpandOccurrencesRequest,
    settings: Settings = Depends(get_settings),
):
    stored = [occ.to_domain() for occ in payload.stored] if payload.stored is not None else None
    try:
        occurrences = expand_occurrences(
            payload.template.to_domain(),
            stored=stored,
            is_destructive=payload.is_destructive,
            horizon_months=settings.RECURRENCE_HORIZON_MONTHS,
        )
    except MalformedInputError as exc:
        raise _unprocessable(exc)
    return [ShiftOccurrenceSchema.model_validate(occ) for occ in occurrences]


@router.post("/assignments/check", response_model=AssignmentCheckResponse)
def check_assignment(
    payload: AssignmentCheckRequest,
    settings: Settings = Depends(get_settings),
):
    roster = [s.to_domain() for s in payload.roster]
    occurrences = [occ.to_domain() for occ in payload.occurrences]

    staff = next((s for s in roster if s.id == payload.staff_id), None)
    if not staff:
        raise HTTPException(status_code=404, detail="Staff member not found")

    occurrence = next((occ for occ in occurrences if occ.id == payload.occurrence_id), None)
    if not occurrence:
        raise HTTPException(status_code=404, detail="Occurrence not found")

    try:
        check = preview_assignment(
            staff, occurrence, roster, occurrences,
            horizon_days=settings.BLOCKED_TIME_HORIZON_DAYS,
        )
    except MalformedInputError as exc:
        raise _unprocessable(exc)
    return AssignmentCheckResponse.model_validate(check)


@router.post("/auto-schedule", response_model=SchedulingResultResponse)
def run_auto_schedule(
    payload: AutoScheduleRequest,
    settings: Settings = Depends(get_settings),
):
    try:
        result = auto_schedule(
            [occ.to_domain() for occ in payload.occurrences],
            [s.to_domain() for s in payload.roster],
            [t.to_domain() for t in payload.traits],
            week_start=payload.week_start,
            context_occurrences=[occ.to_domain() for occ in payload.context_occurrences],
            horizon_days=settings.BLOCKED_TIME_HORIZON_DAYS,
        )
    except MalformedInputError as exc:
        raise _unprocessable(exc)
    return SchedulingResultResponse.model_validate(result)


@router.post("/occurrences/status", response_model=StaffingStatusResponse)
def occurrence_status(
    payload: StaffingStatusRequest,
    settings: Settings = Depends(get_settings),
):
    occurrences = [occ.to_domain() for occ in payload.occurrences]
    occurrence = next((occ for occ in occurrences if occ.id == payload.occurrence_id), None)
    if not occurrence:
        raise HTTPException(status_code=404, detail="Occurrence not found")

    try:
        staffing = assess_staffing(
            occurrence,
            [s.to_domain() for s in payload.roster],
            [t.to_domain() for t in payload.traits],
            occurrences,
            horizon_days=settings.BLOCKED_TIME_HORIZON_DAYS,
        )
    except MalformedInputError as exc:
        raise _unprocessable(exc)
    return StaffingStatusResponse.model_validate(staffing)
