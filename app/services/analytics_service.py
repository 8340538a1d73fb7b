"""Admin dashboard statistics."""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timeutils import parse_hhmm, utc_naive_now
from app.models.appointment import Appointment, AppointmentStatus
from app.models.availability import AvailabilityRule
from app.models.user import User, UserRole

# Weekly availability is projected over four weeks when computing utilization.
UTILIZATION_WEEKS = 4


@dataclass
class ProviderUtilization:
    provider_id: int
    provider_name: str
    booked_minutes: float
    available_minutes: float
    utilization: float


@dataclass
class ClinicStats:
    total_users: int = 0
    total_providers: int = 0
    total_patients: int = 0
    total_appointments: int = 0
    today_appointments: int = 0
    cancelled_appointments: int = 0
    no_show_appointments: int = 0
    completed_appointments: int = 0
    cancellation_rate: float = 0.0
    no_show_rate: float = 0.0
    provider_utilization: list[ProviderUtilization] = field(default_factory=list)
    daily_bookings: dict[str, int] = field(default_factory=dict)


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole > 0 else 0.0


def _rule_minutes(rule: AvailabilityRule) -> float:
    start, end = parse_hhmm(rule.start_time), parse_hhmm(rule.end_time)
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)


async def _count_users(session: AsyncSession, role: UserRole | None = None) -> int:
    q = select(func.count()).select_from(User).where(User.is_archived == False)  # noqa: E712
    if role is not None:
        q = q.where(User.role == role)
    return (await session.execute(q)).scalar_one()


async def get_clinic_stats(
    session: AsyncSession,
    start_date: date | None = None,
    end_date: date | None = None,
    provider_id: int | None = None,
    now: datetime | None = None,
) -> ClinicStats:
    now = now or utc_naive_now()
    q = select(Appointment)
    if start_date and end_date:
        q = q.where(
            Appointment.start_time >= datetime(start_date.year, start_date.month, start_date.day),
            Appointment.start_time < datetime(end_date.year, end_date.month, end_date.day) + timedelta(days=1),
        )
    if provider_id is not None:
        q = q.where(Appointment.provider_id == provider_id)
    appointments = list((await session.execute(q)).scalars().all())

    stats = ClinicStats(
        total_users=await _count_users(session),
        total_providers=await _count_users(session, UserRole.PROVIDER),
        total_patients=await _count_users(session, UserRole.PATIENT),
        total_appointments=len(appointments),
    )
    today = now.date()
    for a in appointments:
        if a.status == AppointmentStatus.CANCELLED:
            stats.cancelled_appointments += 1
        elif a.status == AppointmentStatus.NO_SHOW:
            stats.no_show_appointments += 1
        elif a.status == AppointmentStatus.COMPLETED:
            stats.completed_appointments += 1
        elif a.start_time.date() == today:
            stats.today_appointments += 1
        day_key = a.start_time.date().isoformat()
        stats.daily_bookings[day_key] = stats.daily_bookings.get(day_key, 0) + 1

    not_cancelled = stats.total_appointments - stats.cancelled_appointments
    stats.cancellation_rate = _rate(stats.cancelled_appointments, not_cancelled)
    stats.no_show_rate = _rate(stats.no_show_appointments, not_cancelled)
    stats.daily_bookings = dict(sorted(stats.daily_bookings.items()))

    provider_q = select(User).where(User.role == UserRole.PROVIDER, User.is_archived == False)  # noqa: E712
    if provider_id is not None:
        provider_q = provider_q.where(User.id == provider_id)
    providers = list((await session.execute(provider_q.order_by(User.id))).scalars().all())
    for provider in providers:
        booked = sum(
            (a.end_time - a.start_time).total_seconds() / 60
            for a in appointments
            if a.provider_id == provider.id
            and a.status in (AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED)
        )
        rules = (
            await session.execute(
                select(AvailabilityRule).where(
                    AvailabilityRule.provider_id == provider.id,
                    AvailabilityRule.is_available == True,  # noqa: E712
                )
            )
        ).scalars().all()
        available = sum(_rule_minutes(r) for r in rules) * UTILIZATION_WEEKS
        stats.provider_utilization.append(
            ProviderUtilization(
                provider_id=provider.id,
                provider_name=provider.full_name or provider.email,
                booked_minutes=booked,
                available_minutes=available,
                utilization=_rate(booked, available),
            )
        )
    return stats
