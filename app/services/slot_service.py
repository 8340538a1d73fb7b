from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import InvalidInput, NotFound
from app.core.timeutils import utc_naive_now
from app.models.user import UserRole
from app.services.availability_service import DayWindow, resolve_day_window
from app.services.conflict_service import get_booked_intervals, intervals_overlap
from app.services.user_service import get_active_user_with_role


def candidate_starts(window: DayWindow, duration_minutes: int, granularity_minutes: int) -> list[datetime]:
    """Every granularity step from window start whose full duration fits the window."""
    if not window.is_open:
        return []
    starts: list[datetime] = []
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=granularity_minutes)
    current = window.start
    while current + duration <= window.end:
        starts.append(current)
        current += step
    return starts


def filter_free_slots(
    starts: list[datetime],
    duration_minutes: int,
    busy: list[tuple[datetime, datetime]],
    now: datetime,
) -> list[datetime]:
    duration = timedelta(minutes=duration_minutes)
    free: list[datetime] = []
    for s in starts:
        end = s + duration
        if end <= now:
            continue
        if any(intervals_overlap(s, end, busy_start, busy_end) for busy_start, busy_end in busy):
            continue
        free.append(s)
    return free


async def generate_slots(
    session: AsyncSession,
    provider_id: int,
    d: date,
    duration_minutes: int,
    granularity_minutes: int | None = None,
    now: datetime | None = None,
) -> list[datetime]:
    """Bookable start times (naive UTC, ascending) for a provider on a date.

    Slots overlapping a non-cancelled appointment or a blocked sub-range are
    dropped, as are slots that have already ended.
    """
    if granularity_minutes is None:
        granularity_minutes = settings.slot_granularity_minutes
    if duration_minutes <= 0:
        raise InvalidInput("Duration must be a positive number of minutes")
    if granularity_minutes <= 0:
        raise InvalidInput("Granularity must be a positive number of minutes")
    if await get_active_user_with_role(session, provider_id, UserRole.PROVIDER) is None:
        raise NotFound("Provider not found")

    window = await resolve_day_window(session, provider_id, d)
    starts = candidate_starts(window, duration_minutes, granularity_minutes)
    if not starts:
        return []
    busy = await get_booked_intervals(session, provider_id, d)
    busy.extend(window.blocked_ranges)
    return filter_free_slots(starts, duration_minutes, busy, now or utc_naive_now())
