from datetime import datetime, timedelta

import pytest

from app.core.errors import InvalidInput, NotFound
from app.models.appointment import Appointment, AppointmentStatus
from app.models.availability import AvailabilityException
from app.services.availability_service import DayWindow
from app.services.slot_service import candidate_starts, filter_free_slots, generate_slots
from tests.conftest import BEFORE_MONDAY, MONDAY


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(MONDAY.year, MONDAY.month, MONDAY.day, hour, minute)


async def _book(session, provider, patient, start: datetime, end: datetime, status=AppointmentStatus.SCHEDULED) -> None:
    session.add(
        Appointment(
            patient_id=patient.id,
            provider_id=provider.id,
            title="Checkup",
            start_time=start,
            end_time=end,
            status=status,
        )
    )
    await session.commit()


def test_candidate_starts_fit_inside_window() -> None:
    window = DayWindow(start=_at(9), end=_at(10), is_open=True)

    assert candidate_starts(window, 30, 15) == [_at(9), _at(9, 15), _at(9, 30)]


def test_candidate_starts_closed_window_is_empty() -> None:
    assert candidate_starts(DayWindow(), 30, 30) == []


def test_filter_free_slots_treats_touching_intervals_as_free() -> None:
    starts = [_at(9), _at(9, 30), _at(10)]

    free = filter_free_slots(starts, 30, [(_at(9, 30), _at(10))], now=BEFORE_MONDAY)

    assert free == [_at(9), _at(10)]


async def test_full_monday_yields_sixteen_half_hour_slots(session, provider, monday_hours) -> None:
    slots = await generate_slots(session, provider.id, MONDAY, 30, 30, now=BEFORE_MONDAY)

    assert len(slots) == 16
    assert slots[0] == _at(9)
    assert slots[-1] == _at(16, 30)
    assert slots == sorted(slots)


async def test_booked_slot_is_excluded_but_neighbours_remain(session, provider, patient, monday_hours) -> None:
    await _book(session, provider, patient, _at(10), _at(10, 30))

    slots = await generate_slots(session, provider.id, MONDAY, 30, 30, now=BEFORE_MONDAY)

    assert _at(10) not in slots
    assert _at(9, 30) in slots
    assert _at(10, 30) in slots
    assert len(slots) == 15


async def test_cancelled_appointment_frees_its_slot(session, provider, patient, monday_hours) -> None:
    await _book(session, provider, patient, _at(10), _at(10, 30), status=AppointmentStatus.CANCELLED)

    slots = await generate_slots(session, provider.id, MONDAY, 30, 30, now=BEFORE_MONDAY)

    assert _at(10) in slots


async def test_generation_is_idempotent(session, provider, patient, monday_hours) -> None:
    await _book(session, provider, patient, _at(13), _at(14))

    first = await generate_slots(session, provider.id, MONDAY, 30, 30, now=BEFORE_MONDAY)
    second = await generate_slots(session, provider.id, MONDAY, 30, 30, now=BEFORE_MONDAY)

    assert first == second


async def test_slots_that_already_ended_are_dropped(session, provider, monday_hours) -> None:
    slots = await generate_slots(session, provider.id, MONDAY, 30, 30, now=_at(12, 10))

    assert _at(11, 30) not in slots
    # 12:00-12:30 is still in progress, so it is offered
    assert slots[0] == _at(12)
    assert all(s + timedelta(minutes=30) > _at(12, 10) for s in slots)


async def test_duration_longer_than_window_returns_no_slots(session, provider, monday_hours) -> None:
    assert await generate_slots(session, provider.id, MONDAY, 9 * 60, 30, now=BEFORE_MONDAY) == []


@pytest.mark.parametrize("duration", [0, -30])
async def test_non_positive_duration_is_rejected(session, provider, monday_hours, duration: int) -> None:
    with pytest.raises(InvalidInput):
        await generate_slots(session, provider.id, MONDAY, duration, 30, now=BEFORE_MONDAY)


async def test_non_positive_granularity_is_rejected(session, provider, monday_hours) -> None:
    with pytest.raises(InvalidInput):
        await generate_slots(session, provider.id, MONDAY, 30, 0, now=BEFORE_MONDAY)


async def test_unknown_provider_is_not_found(session) -> None:
    with pytest.raises(NotFound):
        await generate_slots(session, 9999, MONDAY, 30, 30, now=BEFORE_MONDAY)


async def test_patient_id_is_not_a_provider(session, patient) -> None:
    with pytest.raises(NotFound):
        await generate_slots(session, patient.id, MONDAY, 30, 30, now=BEFORE_MONDAY)


async def test_day_without_rule_is_closed(session, provider, monday_hours) -> None:
    tuesday = MONDAY + timedelta(days=1)

    assert await generate_slots(session, provider.id, tuesday, 30, 30, now=BEFORE_MONDAY) == []


async def test_blocked_sub_range_removes_only_those_slots(session, provider, monday_hours) -> None:
    session.add(
        AvailabilityException(
            provider_id=provider.id, date=MONDAY, start_time="12:00", end_time="13:00", reason="Lunch", is_blocked=True
        )
    )
    await session.commit()

    slots = await generate_slots(session, provider.id, MONDAY, 30, 30, now=BEFORE_MONDAY)

    assert _at(12) not in slots
    assert _at(12, 30) not in slots
    assert _at(11, 30) in slots
    assert _at(13) in slots
    assert len(slots) == 14
