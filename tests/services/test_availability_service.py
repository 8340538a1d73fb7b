from datetime import timedelta

import pytest

from app.core.errors import InvalidInput, NotFound, Unauthorized
from app.core.timeutils import at_time, day_of_week
from app.models.availability import (
    AvailabilityException,
    AvailabilityExceptionCreate,
    AvailabilityExceptionPublic,
    AvailabilityRuleCreate,
)
from app.models.clinic_policy import ClinicPolicy
from app.services.audit_service import AuditAction
from app.services.availability_service import (
    create_exception,
    delete_exception,
    list_exceptions,
    list_rules,
    resolve_day_window,
    upsert_rule,
)
from tests.conftest import MONDAY, MONDAY_DOW


def test_day_of_week_counts_from_sunday() -> None:
    assert day_of_week(MONDAY) == MONDAY_DOW
    assert day_of_week(MONDAY - timedelta(days=1)) == 0
    assert day_of_week(MONDAY + timedelta(days=5)) == 6


async def test_upsert_rule_creates_then_replaces(session, provider, audit_sink) -> None:
    await upsert_rule(session, provider, AvailabilityRuleCreate(day_of_week=1, start_time="09:00", end_time="12:00"))
    rule = await upsert_rule(
        session, provider, AvailabilityRuleCreate(day_of_week=1, start_time="10:00", end_time="16:00"), audit=audit_sink
    )
    await session.commit()

    rules = await list_rules(session, provider.id)
    assert len(rules) == 1
    assert (rule.start_time, rule.end_time) == ("10:00", "16:00")
    assert audit_sink.actions == [AuditAction.AVAILABILITY_UPDATED]


async def test_upsert_rule_rejects_inverted_hours(session, provider) -> None:
    with pytest.raises(InvalidInput):
        await upsert_rule(session, provider, AvailabilityRuleCreate(day_of_week=1, start_time="17:00", end_time="09:00"))


async def test_upsert_rule_rejects_malformed_time(session, provider) -> None:
    with pytest.raises(InvalidInput):
        await upsert_rule(session, provider, AvailabilityRuleCreate(day_of_week=1, start_time="9am", end_time="17:00"))


async def test_only_providers_manage_availability(session, patient) -> None:
    with pytest.raises(Unauthorized):
        await upsert_rule(session, patient, AvailabilityRuleCreate(day_of_week=1, start_time="09:00", end_time="17:00"))


async def test_exception_needs_both_times_or_neither(session, provider) -> None:
    with pytest.raises(InvalidInput):
        await create_exception(session, provider, AvailabilityExceptionCreate(date=MONDAY, start_time="10:00"))


async def test_create_list_and_delete_exception(session, provider, audit_sink) -> None:
    exception = await create_exception(
        session, provider, AvailabilityExceptionCreate(date=MONDAY, reason="Conference"), audit=audit_sink
    )
    await session.commit()
    assert [e.id for e in await list_exceptions(session, provider.id, MONDAY, MONDAY)] == [exception.id]

    await delete_exception(session, provider, exception.id, audit=audit_sink)
    await session.commit()

    assert await list_exceptions(session, provider.id) == []
    assert audit_sink.actions == [
        AuditAction.AVAILABILITY_EXCEPTION_CREATED,
        AuditAction.AVAILABILITY_EXCEPTION_DELETED,
    ]


async def test_cannot_delete_another_providers_exception(session, provider, other_provider) -> None:
    exception = await create_exception(session, provider, AvailabilityExceptionCreate(date=MONDAY))
    await session.commit()

    with pytest.raises(NotFound):
        await delete_exception(session, other_provider, exception.id)


async def test_weekly_rule_gives_window(session, provider, monday_hours) -> None:
    window = await resolve_day_window(session, provider.id, MONDAY)

    assert window.is_open
    assert window.start == at_time(MONDAY, "09:00")
    assert window.end == at_time(MONDAY, "17:00")
    assert window.blocked_ranges == []


async def test_unavailable_rule_closes_day(session, provider) -> None:
    await upsert_rule(
        session, provider, AvailabilityRuleCreate(day_of_week=1, start_time="09:00", end_time="17:00", is_available=False)
    )
    await session.commit()

    assert not (await resolve_day_window(session, provider.id, MONDAY)).is_open


async def test_full_day_block_closes_day(session, provider, monday_hours) -> None:
    session.add(AvailabilityException(provider_id=provider.id, date=MONDAY, reason="Holiday", is_blocked=True))
    await session.commit()

    assert not (await resolve_day_window(session, provider.id, MONDAY)).is_open


async def test_ranged_opening_replaces_weekly_window(session, provider, monday_hours) -> None:
    session.add(
        AvailabilityException(provider_id=provider.id, date=MONDAY, start_time="13:00", end_time="15:00", is_blocked=False)
    )
    await session.commit()

    window = await resolve_day_window(session, provider.id, MONDAY)

    assert (window.start, window.end) == (at_time(MONDAY, "13:00"), at_time(MONDAY, "15:00"))


async def test_latest_ranged_opening_wins(session, provider) -> None:
    session.add(
        AvailabilityException(provider_id=provider.id, date=MONDAY, start_time="08:00", end_time="10:00", is_blocked=False)
    )
    await session.commit()
    session.add(
        AvailabilityException(provider_id=provider.id, date=MONDAY, start_time="14:00", end_time="18:00", is_blocked=False)
    )
    await session.commit()

    window = await resolve_day_window(session, provider.id, MONDAY)

    assert (window.start, window.end) == (at_time(MONDAY, "14:00"), at_time(MONDAY, "18:00"))


async def test_open_day_without_rule_uses_office_hours(session, provider) -> None:
    session.add(ClinicPolicy(office_hours_start="08:30", office_hours_end="12:30"))
    session.add(AvailabilityException(provider_id=provider.id, date=MONDAY, is_blocked=False))
    await session.commit()

    window = await resolve_day_window(session, provider.id, MONDAY)

    assert window.is_open
    assert (window.start, window.end) == (at_time(MONDAY, "08:30"), at_time(MONDAY, "12:30"))


async def test_blocked_sub_range_keeps_day_open(session, provider, monday_hours) -> None:
    session.add(
        AvailabilityException(provider_id=provider.id, date=MONDAY, start_time="12:00", end_time="13:00", is_blocked=True)
    )
    await session.commit()

    window = await resolve_day_window(session, provider.id, MONDAY)

    assert window.is_open
    assert window.blocked_ranges == [(at_time(MONDAY, "12:00"), at_time(MONDAY, "13:00"))]


async def test_exception_on_another_date_is_ignored(session, provider, monday_hours) -> None:
    session.add(AvailabilityException(provider_id=provider.id, date=MONDAY + timedelta(days=7), is_blocked=True))
    await session.commit()

    assert (await resolve_day_window(session, provider.id, MONDAY)).is_open


async def test_exception_models_carry_a_calendar_date(session, provider) -> None:
    exception = await create_exception(session, provider, AvailabilityExceptionCreate(date=MONDAY, reason="Training"))

    public = AvailabilityExceptionPublic.model_validate(exception)

    assert public.date == MONDAY
    assert public.is_blocked is True
