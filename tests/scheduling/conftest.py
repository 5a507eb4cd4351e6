import pytest
from datetime import date, datetime, time, timedelta

from shiftplan.services.scheduling.types import (
    Requirements,
    ShiftOccurrence,
    StaffConstraints,
    StaffMember,
    Trait,
    TraitRequirement,
)


def get_test_monday() -> date:
    # returns a fixed Monday for deterministic tests
    return date(2025, 1, 20)


def at(day_offset: int, hour: int, minute: int = 0) -> datetime:
    # datetime relative to the test Monday
    return datetime.combine(get_test_monday() + timedelta(days=day_offset), time(hour, minute))


def make_occurrence(
    occ_id: str,
    day_offset: int = 0,
    start_hour: int = 9,
    end_hour: int = 17,
    headcount: int = 1,
    required_traits: list[tuple[str, int]] = (),
    excluded_trait_ids: list[str] = (),
    assigned: list[str] = (),
    name: str = "Day shift",
) -> ShiftOccurrence:
    return ShiftOccurrence(
        id=occ_id,
        parent_shift_id="shift-1",
        name=name,
        start=at(day_offset, start_hour),
        end=at(day_offset, end_hour),
        requirements=Requirements(
            headcount=headcount,
            required_traits=[TraitRequirement(trait_id=t, min_count=n) for t, n in required_traits],
            excluded_trait_ids=list(excluded_trait_ids),
        ),
        assigned_staff_ids=list(assigned),
    )


@pytest.fixture
def traits() -> list[Trait]:
    return [
        Trait(id="t-first-aid", name="First Aid"),
        Trait(id="t-keyholder", name="Keyholder"),
        Trait(id="t-trainee", name="Trainee"),
    ]


@pytest.fixture
def basic_staff() -> StaffMember:
    # no traits, default constraints
    return StaffMember(id="s1", name="Alice")


@pytest.fixture
def three_staff() -> list[StaffMember]:
    # s1 first aider, s2 keyholder, s3 no traits
    return [
        StaffMember(id="s1", name="Alice", trait_ids={"t-first-aid"}),
        StaffMember(id="s2", name="Bob", trait_ids={"t-keyholder"}),
        StaffMember(id="s3", name="Carol"),
    ]


@pytest.fixture
def weekly_capped_staff() -> StaffMember:
    return StaffMember(
        id="s4",
        name="Dan",
        constraints=StaffConstraints(max_shifts_per_week=2),
    )
