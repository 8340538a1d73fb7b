"""Provider availability: weekly rules plus date-specific exceptions.

Resolution rules for a single date:

* a blocking exception without a time range closes the whole day;
* a blocking exception with a time range blocks only that sub-range, the
  rest of the window stays bookable;
* a non-blocking exception with a time range replaces the weekly window
  (the most recently created one wins);
* a non-blocking exception without a time range opens the day with the
  weekly hours, or the clinic office hours when there is no usable rule;
* otherwise the weekly rule applies, and a missing or unavailable rule
  means the day is closed.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidInput, NotFound, Unauthorized
from app.core.timeutils import at_time, day_of_week, is_hhmm, parse_hhmm
from app.models.availability import (
    AvailabilityException,
    AvailabilityExceptionCreate,
    AvailabilityRule,
    AvailabilityRuleCreate,
)
from app.models.user import User, UserRole
from app.services.audit_service import AuditAction, AuditSink, emit_audit
from app.services.policy_service import get_clinic_policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DayWindow:
    """Open hours of one provider on one date, as naive UTC datetimes."""

    start: datetime | None = None
    end: datetime | None = None
    is_open: bool = False
    blocked_ranges: list[tuple[datetime, datetime]] = field(default_factory=list)


CLOSED = DayWindow()


def _validate_range(start_time: str, end_time: str) -> None:
    if not is_hhmm(start_time) or not is_hhmm(end_time):
        raise InvalidInput("Times must be in HH:MM format")
    if parse_hhmm(start_time) >= parse_hhmm(end_time):
        raise InvalidInput("End time must be after start time")


def _require_provider(actor: User) -> None:
    if actor.role != UserRole.PROVIDER:
        raise Unauthorized("Only providers can manage availability")


async def get_rule(session: AsyncSession, provider_id: int, dow: int) -> AvailabilityRule | None:
    result = await session.execute(
        select(AvailabilityRule).where(
            AvailabilityRule.provider_id == provider_id,
            AvailabilityRule.day_of_week == dow,
        )
    )
    return result.scalar_one_or_none()


async def list_rules(session: AsyncSession, provider_id: int) -> list[AvailabilityRule]:
    result = await session.execute(
        select(AvailabilityRule)
        .where(AvailabilityRule.provider_id == provider_id)
        .order_by(AvailabilityRule.day_of_week)
    )
    return list(result.scalars().all())


async def upsert_rule(
    session: AsyncSession,
    actor: User,
    data: AvailabilityRuleCreate,
    audit: AuditSink | None = None,
) -> AvailabilityRule:
    _require_provider(actor)
    if not 0 <= data.day_of_week <= 6:
        raise InvalidInput("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    if data.is_available:
        _validate_range(data.start_time, data.end_time)
    elif not is_hhmm(data.start_time) or not is_hhmm(data.end_time):
        raise InvalidInput("Times must be in HH:MM format")

    rule = await get_rule(session, actor.id, data.day_of_week)
    if rule is None:
        rule = AvailabilityRule(provider_id=actor.id, day_of_week=data.day_of_week, start_time="", end_time="")
    rule.start_time = data.start_time
    rule.end_time = data.end_time
    rule.is_available = data.is_available
    session.add(rule)
    await session.flush()
    await session.refresh(rule)

    emit_audit(
        audit,
        actor.id,
        AuditAction.AVAILABILITY_UPDATED,
        "Availability",
        rule.id,
        {
            "day_of_week": rule.day_of_week,
            "start_time": rule.start_time,
            "end_time": rule.end_time,
            "is_available": rule.is_available,
        },
    )
    return rule


async def list_exceptions(
    session: AsyncSession,
    provider_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[AvailabilityException]:
    q = select(AvailabilityException).where(AvailabilityException.provider_id == provider_id)
    if start_date and end_date:
        q = q.where(AvailabilityException.date >= start_date, AvailabilityException.date <= end_date)
    result = await session.execute(q.order_by(AvailabilityException.date, AvailabilityException.id))
    return list(result.scalars().all())


async def create_exception(
    session: AsyncSession,
    actor: User,
    data: AvailabilityExceptionCreate,
    audit: AuditSink | None = None,
) -> AvailabilityException:
    _require_provider(actor)
    start_time = data.start_time or None
    end_time = data.end_time or None
    if (start_time is None) != (end_time is None):
        raise InvalidInput("Provide both start_time and end_time, or neither")
    if start_time is not None:
        _validate_range(start_time, end_time)

    exception = AvailabilityException(
        provider_id=actor.id,
        date=data.date,
        start_time=start_time,
        end_time=end_time,
        reason=data.reason or None,
        is_blocked=data.is_blocked,
    )
    session.add(exception)
    await session.flush()
    await session.refresh(exception)

    emit_audit(
        audit,
        actor.id,
        AuditAction.AVAILABILITY_EXCEPTION_CREATED,
        "Availability",
        exception.id,
        {"date": exception.date.isoformat(), "reason": exception.reason, "is_blocked": exception.is_blocked},
    )
    return exception


async def delete_exception(
    session: AsyncSession,
    actor: User,
    exception_id: int,
    audit: AuditSink | None = None,
) -> None:
    _require_provider(actor)
    result = await session.execute(
        select(AvailabilityException).where(
            AvailabilityException.id == exception_id,
            AvailabilityException.provider_id == actor.id,
        )
    )
    exception = result.scalar_one_or_none()
    if exception is None:
        raise NotFound("Availability exception not found")
    exception_date = exception.date
    await session.delete(exception)
    await session.flush()
    emit_audit(
        audit,
        actor.id,
        AuditAction.AVAILABILITY_EXCEPTION_DELETED,
        "Availability",
        exception_id,
        {"date": exception_date.isoformat()},
    )


async def resolve_day_window(session: AsyncSession, provider_id: int, d: date) -> DayWindow:
    rule = await get_rule(session, provider_id, day_of_week(d))
    result = await session.execute(
        select(AvailabilityException)
        .where(
            AvailabilityException.provider_id == provider_id,
            AvailabilityException.date == d,
        )
        .order_by(AvailabilityException.created_at, AvailabilityException.id)
    )
    exceptions = list(result.scalars().all())

    if any(e.is_blocked and e.start_time is None for e in exceptions):
        return CLOSED

    window: tuple[str, str] | None = None
    if rule is not None and rule.is_available:
        window = (rule.start_time, rule.end_time)

    openings = [e for e in exceptions if not e.is_blocked]
    ranged_openings = [e for e in openings if e.start_time is not None]
    if ranged_openings:
        latest = ranged_openings[-1]
        window = (latest.start_time, latest.end_time)
    elif openings and window is None:
        policy = await get_clinic_policy(session)
        window = (policy.office_hours_start, policy.office_hours_end)

    if window is None:
        return CLOSED

    start, end = at_time(d, window[0]), at_time(d, window[1])
    if start >= end:
        logger.warning("Provider %s has an empty availability window on %s", provider_id, d)
        return CLOSED

    blocked = sorted(
        (at_time(d, e.start_time), at_time(d, e.end_time))
        for e in exceptions
        if e.is_blocked and e.start_time is not None
    )
    return DayWindow(start=start, end=end, is_open=True, blocked_ranges=blocked)
