"""
Recurrence expansion.
Turns a recurring shift template into concrete dated occurrences, and merges
a fresh expansion with occurrences the caller has stored.
"""

import calendar
import logging
from dataclasses import replace
from datetime import datetime, time, timedelta
from typing import Iterable, Iterator, Optional

from .exceptions import MalformedInputError
from .types import (
    RecurrenceKind,
    RecurrenceRule,
    ShiftOccurrence,
    ShiftTemplate,
)

logger = logging.getLogger(__name__)


DEFAULT_HORIZON_MONTHS = 12
ID_TIMESTAMP_FORMAT = "%Y%m%dT%H%M"


def sunday_weekday(value: datetime) -> int:
    """Weekday number with 0=Sunday .. 6=Saturday."""
    return (value.weekday() + 1) % 7


def add_months(value: datetime, months: int, day: Optional[int] = None) -> tuple[datetime, bool]:
    """
    Move `value` forward by whole months keeping `day` (defaults to value.day).
    Clamps to the last day of the target month when it is too short.

    Returns:
        (new datetime, True if the day had to be clamped)
    """
    wanted = day or value.day
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    if wanted <= last_day:
        return value.replace(year=year, month=month, day=wanted), False
    return value.replace(year=year, month=month, day=last_day), True


def validate_rule(rule: RecurrenceRule) -> None:
    if rule.kind not in (RecurrenceKind.DAILY, RecurrenceKind.WEEKLY, RecurrenceKind.MONTHLY):
        raise MalformedInputError(f"Unknown recurrence kind: {rule.kind!r}")
    if rule.interval is None or rule.interval <= 0:
        raise MalformedInputError(f"Recurrence interval must be >= 1, got {rule.interval}")
    for weekday in rule.weekdays:
        if not 0 <= weekday <= 6:
            raise MalformedInputError(f"Weekday must be between 0 (Sunday) and 6, got {weekday}")


def _next_weekly_date(current: datetime, weekdays: list[int], interval: int) -> datetime:
    """Next configured weekday later this week, else the first one `interval` weeks on."""
    current_day = sunday_weekday(current)
    ordered = sorted(set(weekdays))
    for weekday in ordered:
        if weekday > current_day:
            return current + timedelta(days=weekday - current_day)
    days_to_next_week = 7 - current_day + ordered[0]
    return current + timedelta(days=days_to_next_week + (interval - 1) * 7)


def iter_recurrence(
    start: datetime,
    rule: Optional[RecurrenceRule],
    limit: datetime,
) -> Iterator[tuple[datetime, bool]]:
    """
    Yield (start, day_adjusted) for the base date and every recurrence of it
    up to and including `limit`. A rule end date further bounds the series and
    is a whole calendar day: a recurrence starting any time on it is kept,
    unlike a midnight cut-off that would drop same-day shifts.

    Shared by shift expansion and blocked-time unrolling.
    """
    yield start, False
    if rule is None:
        return
    validate_rule(rule)

    if rule.end_date is not None:
        limit = min(limit, datetime.combine(rule.end_date, time.max))

    current = start
    step = 0
    while True:
        step += 1
        day_adjusted = False
        if rule.kind == RecurrenceKind.DAILY:
            current = current + timedelta(days=rule.interval)
        elif rule.kind == RecurrenceKind.WEEKLY:
            if rule.weekdays:
                current = _next_weekly_date(current, rule.weekdays, rule.interval)
            else:
                current = current + timedelta(weeks=rule.interval)
        else:
            # always measured from the base date so a clamp never drifts the series
            current, day_adjusted = add_months(start, step * rule.interval, day=start.day)

        if current > limit:
            return
        if current == start:
            continue
        yield current, day_adjusted


def occurrence_id(template_id: str, start: datetime, index: int) -> str:
    return f"{template_id}-{start.strftime(ID_TIMESTAMP_FORMAT)}-{index}"


def expand(
    template: ShiftTemplate,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> list[ShiftOccurrence]:
    """
    Expand a shift template into its ordered occurrences.

    The template's own start/end is always occurrence 0. Recurrences run until
    the rule's end date, or `horizon_months` after the template start when unset.
    Every occurrence gets its own copy of the template requirements.

    Raises:
        MalformedInputError: invalid interval/kind/weekday, or end not after start
    """
    if template.end <= template.start:
        raise MalformedInputError(
            f"Shift '{template.name}' must end after it starts "
            f"({template.start.isoformat()} - {template.end.isoformat()})"
        )

    limit, _ = add_months(template.start, horizon_months)
    duration = template.duration

    occurrences: list[ShiftOccurrence] = []
    adjusted: list[datetime] = []
    for index, (start, day_adjusted) in enumerate(iter_recurrence(template.start, template.recurrence, limit)):
        occurrences.append(ShiftOccurrence(
            id=occurrence_id(template.id, start, index),
            parent_shift_id=template.id,
            name=template.name,
            start=start,
            end=start + duration,
            requirements=replace(
                template.requirements,
                required_traits=[replace(r) for r in template.requirements.required_traits],
                excluded_trait_ids=list(template.requirements.excluded_trait_ids),
            ),
            assigned_staff_ids=[],
            day_adjusted=day_adjusted,
        ))
        if day_adjusted:
            adjusted.append(start)

    if adjusted:
        logger.info(
            "Shift %s: monthly recurrences moved to the last day of the month: %s",
            template.id,
            ", ".join(d.date().isoformat() for d in adjusted),
        )
    logger.debug("Expanded shift %s into %d occurrence(s)", template.id, len(occurrences))
    return occurrences


def expand_all(
    templates: Iterable[ShiftTemplate],
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> list[ShiftOccurrence]:
    occurrences: list[ShiftOccurrence] = []
    for template in templates:
        occurrences.extend(expand(template, horizon_months=horizon_months))
    return occurrences


def merge_with_stored(
    template: ShiftTemplate,
    generated: list[ShiftOccurrence],
    stored: Iterable[ShiftOccurrence],
    is_destructive: bool = False,
) -> list[ShiftOccurrence]:
    """
    Combine a fresh expansion with the caller's stored occurrences.

    A stored occurrence with the same id replaces the generated one, so manual
    edits and assignments survive regeneration. Soft-deleted ids are never
    re-materialised. A destructive edit discards every stored occurrence of the
    template before merging.
    """
    if is_destructive:
        logger.info("Destructive edit of shift %s: discarding stored occurrence overrides", template.id)
        return list(generated)

    stored_by_id = {occ.id: occ for occ in stored if occ.parent_shift_id == template.id}

    merged: list[ShiftOccurrence] = []
    for occ in generated:
        existing = stored_by_id.get(occ.id)
        if existing is None:
            merged.append(occ)
        elif not existing.is_deleted:
            merged.append(existing)
    return merged


def regenerate_occurrences(
    template: ShiftTemplate,
    stored: Iterable[ShiftOccurrence] = (),
    is_destructive: bool = False,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> list[ShiftOccurrence]:
    generated = expand(template, horizon_months=horizon_months)
    return merge_with_stored(template, generated, stored, is_destructive=is_destructive)


def _trait_key(template: ShiftTemplate) -> set[tuple[str, int]]:
    return {(r.trait_id, r.min_count) for r in template.requirements.required_traits}


def is_destructive_change(old: ShiftTemplate, new: ShiftTemplate) -> bool:
    """
    Whether an edit invalidates occurrence-level overrides: timing,
    recurrence shape, or required traits changed.
    """
    if old.start != new.start or old.end != new.end:
        return True

    old_rule, new_rule = old.recurrence, new.recurrence
    if (old_rule is None) != (new_rule is None):
        return True
    if old_rule is not None and new_rule is not None:
        if (
            old_rule.kind != new_rule.kind
            or old_rule.interval != new_rule.interval
            or old_rule.end_date != new_rule.end_date
            or sorted(old_rule.weekdays) != sorted(new_rule.weekdays)
        ):
            return True

    return _trait_key(old) != _trait_key(new)

