from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointment import Appointment, AppointmentStatus
from app.models.user import User


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open [start, end) intervals overlap; touching endpoints do not."""
    return start_a < end_b and start_b < end_a


def _active_for_provider(provider_id: int):
    return select(Appointment).where(
        Appointment.provider_id == provider_id,
        Appointment.status != AppointmentStatus.CANCELLED,
    )


async def find_conflicts(
    session: AsyncSession,
    provider_id: int,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    q = _active_for_provider(provider_id).where(
        Appointment.start_time < end,
        Appointment.end_time > start,
    )
    if exclude_appointment_id is not None:
        q = q.where(Appointment.id != exclude_appointment_id)
    result = await session.execute(q.order_by(Appointment.start_time))
    return list(result.scalars().all())


async def has_conflict(
    session: AsyncSession,
    provider_id: int,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> bool:
    return bool(await find_conflicts(session, provider_id, start, end, exclude_appointment_id))


async def get_booked_intervals(
    session: AsyncSession, provider_id: int, d: date
) -> list[tuple[datetime, datetime]]:
    """Non-cancelled appointment intervals touching the given date."""
    day_start = datetime(d.year, d.month, d.day)
    day_end = day_start + timedelta(days=1)
    result = await session.execute(
        select(Appointment.start_time, Appointment.end_time)
        .where(
            Appointment.provider_id == provider_id,
            Appointment.status != AppointmentStatus.CANCELLED,
            Appointment.start_time < day_end,
            Appointment.end_time > day_start,
        )
        .order_by(Appointment.start_time)
    )
    return [(row[0], row[1]) for row in result.all()]


async def lock_provider_schedule(session: AsyncSession, provider_id: int) -> None:
    """Serialize check-then-write per provider.

    Takes a row lock on the provider (SELECT ... FOR UPDATE) for the rest of the
    transaction. SQLite ignores FOR UPDATE; there the single-writer lock plus
    the post-insert re-check in the booking flow close the race.
    """
    await session.execute(select(User.id).where(User.id == provider_id).with_for_update())
