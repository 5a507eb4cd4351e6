import logging
import pytest
from dataclasses import replace
from datetime import date, datetime, time

from shiftplan.services.scheduling.exceptions import MalformedInputError
from shiftplan.services.scheduling.recurrence import (
    add_months,
    expand,
    expand_all,
    is_destructive_change,
    regenerate_occurrences,
    sunday_weekday,
)
from shiftplan.services.scheduling.types import (
    RecurrenceKind,
    RecurrenceRule,
    Requirements,
    ShiftTemplate,
    TraitRequirement,
)

from conftest import get_test_monday


def make_template(
    start: datetime = None,
    hours: int = 8,
    recurrence: RecurrenceRule = None,
    template_id: str = "shift-1",
) -> ShiftTemplate:
    start = start or datetime.combine(get_test_monday(), time(9, 0))
    return ShiftTemplate(
        id=template_id,
        name="Day shift",
        start=start,
        end=start.replace(hour=start.hour + hours),
        requirements=Requirements(
            headcount=2,
            required_traits=[TraitRequirement(trait_id="t-first-aid", min_count=1)],
        ),
        recurrence=recurrence,
    )


class TestHelpers:

    def test_sunday_weekday(self):
        monday = datetime.combine(get_test_monday(), time(9, 0))
        assert sunday_weekday(monday) == 1
        assert sunday_weekday(monday.replace(day=26)) == 0  # Sunday

    def test_add_months_clamps(self):
        value, clamped = add_months(datetime(2025, 1, 31, 9), 1)
        assert value == datetime(2025, 2, 28, 9)
        assert clamped

    def test_add_months_across_year(self):
        value, clamped = add_months(datetime(2025, 11, 15, 9), 3)
        assert value == datetime(2026, 2, 15, 9)
        assert not clamped


class TestExpand:

    def test_single_occurrence_without_recurrence(self):
        occurrences = expand(make_template())
        assert len(occurrences) == 1
        assert occurrences[0].id == "shift-1-20250120T0900-0"
        assert occurrences[0].assigned_staff_ids == []

    def test_deterministic(self):
        template = make_template(recurrence=RecurrenceRule(
            kind=RecurrenceKind.DAILY, end_date=date(2025, 1, 26),
        ))
        first = expand(template)
        second = expand(template)
        assert [o.id for o in first] == [o.id for o in second]
        assert [o.start for o in first] == [o.start for o in second]
        assert len(first) == 7

    def test_daily_interval(self):
        template = make_template(recurrence=RecurrenceRule(
            kind=RecurrenceKind.DAILY, interval=3, end_date=date(2025, 1, 31),
        ))
        days = [o.start.day for o in expand(template)]
        assert days == [20, 23, 26, 29]

    def test_end_date_is_inclusive(self):
        template = make_template(recurrence=RecurrenceRule(
            kind=RecurrenceKind.DAILY, end_date=date(2025, 1, 22),
        ))
        assert [o.start.day for o in expand(template)] == [20, 21, 22]

    def test_default_horizon(self):
        template = make_template(recurrence=RecurrenceRule(kind=RecurrenceKind.DAILY))
        occurrences = expand(template, horizon_months=1)
        # Jan 20 through Feb 20 inclusive
        assert len(occurrences) == 32
        assert occurrences[-1].start == datetime(2025, 2, 20, 9, 0)

    def test_weekly_explicit_weekdays(self):
        # Mon/Wed/Fri with 0=Sunday numbering
        template = make_template(recurrence=RecurrenceRule(
            kind=RecurrenceKind.WEEKLY, weekdays=[1, 3, 5], end_date=date(2025, 2, 2),
        ))
        occurrences = expand(template)
        assert len(occurrences) == 6
        assert {sunday_weekday(o.start) for o in occurrences} == {1, 3, 5}
        assert [o.start.day for o in occurrences] == [20, 22, 24, 27, 29, 31]

    def test_weekly_weekdays_with_interval(self):
        template = make_template(recurrence=RecurrenceRule(
            kind=RecurrenceKind.WEEKLY, interval=2, weekdays=[1, 5], end_date=date(2025, 2, 16),
        ))
        days = [o.start.date() for o in expand(template)]
        assert days == [date(2025, 1, 20), date(2025, 1, 24), date(2025, 2, 3), date(2025, 2, 7)]

    def test_weekly_without_weekdays(self):
        template = make_template(recurrence=RecurrenceRule(
            kind=RecurrenceKind.WEEKLY, interval=2, end_date=date(2025, 2, 20),
        ))
        days = [o.start.day for o in expand(template)]
        assert days == [20, 3, 17]

    def test_no_duplicate_at_origin(self):
        template = make_template(recurrence=RecurrenceRule(
            kind=RecurrenceKind.WEEKLY, weekdays=[1], end_date=date(2025, 2, 10),
        ))
        occurrences = expand(template)
        starts = [o.start for o in occurrences]
        assert starts.count(template.start) == 1
        assert len(starts) == len(set(starts))

    def test_monthly_rollover(self):
        template = make_template(
            start=datetime(2025, 1, 31, 9, 0),
            recurrence=RecurrenceRule(kind=RecurrenceKind.MONTHLY, end_date=date(2025, 5, 31)),
        )
        occurrences = expand(template)
        assert [o.start.date() for o in occurrences] == [
            date(2025, 1, 31),
            date(2025, 2, 28),
            date(2025, 3, 31),
            date(2025, 4, 30),
            date(2025, 5, 31),
        ]
        assert [o.day_adjusted for o in occurrences] == [False, True, False, True, False]

    def test_monthly_rollover_logged(self, caplog):
        template = make_template(
            start=datetime(2025, 1, 31, 9, 0),
            recurrence=RecurrenceRule(kind=RecurrenceKind.MONTHLY, end_date=date(2025, 2, 28)),
        )
        with caplog.at_level(logging.INFO, logger="shiftplan.services.scheduling.recurrence"):
            expand(template)
        assert "2025-02-28" in caplog.text

    def test_occurrence_keeps_duration_and_requirements(self):
        template = make_template(hours=6, recurrence=RecurrenceRule(
            kind=RecurrenceKind.DAILY, end_date=date(2025, 1, 21),
        ))
        occurrences = expand(template)
        assert all(o.end - o.start == template.duration for o in occurrences)
        assert all(o.parent_shift_id == "shift-1" for o in occurrences)
        assert occurrences[1].requirements.headcount == 2

    def test_requirements_copied_by_value(self):
        template = make_template(recurrence=RecurrenceRule(
            kind=RecurrenceKind.DAILY, end_date=date(2025, 1, 21),
        ))
        occurrences = expand(template)
        occurrences[0].requirements.required_traits.append(TraitRequirement("t-keyholder", 1))
        assert len(template.requirements.required_traits) == 1
        assert len(occurrences[1].requirements.required_traits) == 1

    def test_end_date_before_start_gives_base_only(self):
        template = make_template(recurrence=RecurrenceRule(
            kind=RecurrenceKind.DAILY, end_date=date(2025, 1, 1),
        ))
        assert len(expand(template)) == 1

    def test_expand_all(self):
        rule = RecurrenceRule(kind=RecurrenceKind.DAILY, end_date=date(2025, 1, 21))
        occurrences = expand_all([
            make_template(recurrence=rule),
            make_template(recurrence=rule, template_id="shift-2"),
        ])
        assert len(occurrences) == 4
        assert {o.parent_shift_id for o in occurrences} == {"shift-1", "shift-2"}


class TestMalformedTemplates:

    @pytest.mark.parametrize("interval", [0, -1])
    def test_non_positive_interval(self, interval):
        template = make_template(recurrence=RecurrenceRule(kind=RecurrenceKind.DAILY, interval=interval))
        with pytest.raises(MalformedInputError):
            expand(template)

    def test_weekday_out_of_range(self):
        template = make_template(recurrence=RecurrenceRule(kind=RecurrenceKind.WEEKLY, weekdays=[7]))
        with pytest.raises(MalformedInputError):
            expand(template)

    def test_end_not_after_start(self):
        template = make_template()
        template.end = template.start
        with pytest.raises(MalformedInputError):
            expand(template)


class TestRegenerate:

    def _template(self):
        return make_template(recurrence=RecurrenceRule(
            kind=RecurrenceKind.DAILY, end_date=date(2025, 1, 22),
        ))

    def test_stored_overrides_win(self):
        template = self._template()
        stored = expand(template)
        stored[1] = replace(stored[1], assigned_staff_ids=["s1"], is_modified=True)

        merged = regenerate_occurrences(template, stored)
        assert len(merged) == 3
        assert merged[1].assigned_staff_ids == ["s1"]
        assert merged[1].is_modified

    def test_deleted_not_rematerialised(self):
        template = self._template()
        stored = expand(template)
        stored[2] = replace(stored[2], is_deleted=True)

        merged = regenerate_occurrences(template, stored)
        assert [o.id for o in merged] == [stored[0].id, stored[1].id]

    def test_destructive_discards_overrides(self):
        template = self._template()
        stored = expand(template)
        stored[0] = replace(stored[0], assigned_staff_ids=["s1"], is_modified=True)
        stored[2] = replace(stored[2], is_deleted=True)

        merged = regenerate_occurrences(template, stored, is_destructive=True)
        assert len(merged) == 3
        assert all(o.assigned_staff_ids == [] for o in merged)
        assert not any(o.is_modified for o in merged)

    def test_other_templates_ignored(self):
        template = self._template()
        other = expand(make_template(template_id="shift-9"))
        other[0] = replace(other[0], id=expand(template)[0].id, assigned_staff_ids=["s2"])

        merged = regenerate_occurrences(template, other)
        assert merged[0].assigned_staff_ids == []


class TestDestructiveChange:

    def test_rename_is_not_destructive(self):
        old = make_template()
        new = replace(old, name="Morning shift")
        assert not is_destructive_change(old, new)

    def test_headcount_is_not_destructive(self):
        old = make_template()
        new = replace(old, requirements=replace(old.requirements, headcount=5))
        assert not is_destructive_change(old, new)

    def test_time_change_is_destructive(self):
        old = make_template()
        new = replace(old, start=old.start.replace(hour=10))
        assert is_destructive_change(old, new)

    def test_recurrence_change_is_destructive(self):
        old = make_template(recurrence=RecurrenceRule(kind=RecurrenceKind.WEEKLY, weekdays=[1, 3]))
        new = replace(old, recurrence=RecurrenceRule(kind=RecurrenceKind.WEEKLY, weekdays=[1, 4]))
        assert is_destructive_change(old, new)
        assert is_destructive_change(old, replace(old, recurrence=None))

    def test_trait_change_is_destructive(self):
        old = make_template()
        new = replace(old, requirements=Requirements(
            headcount=2,
            required_traits=[TraitRequirement(trait_id="t-first-aid", min_count=2)],
        ))
        assert is_destructive_change(old, new)
