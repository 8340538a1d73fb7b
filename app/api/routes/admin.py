import math
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_audit_sink, require_roles
from app.api.schemas.admin import AuditLogEntry, AuditLogPage, ClinicStatsResponse, ProviderUtilizationOut
from app.core.config import settings
from app.core.db import get_session
from app.models.user import User, UserCreate, UserPublic, UserRole
from app.services.analytics_service import get_clinic_stats
from app.services.audit_service import AuditSink, list_audit_logs, load_metadata
from app.services.user_service import admin_create_user, archive_user, restore_user, user_to_public

router = APIRouter(prefix="/admin", tags=["admin"])

admin_only = require_roles(UserRole.ADMIN)


@router.get("/audit", response_model=AuditLogPage)
async def audit_log(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    actor_user_id: int | None = Query(None),
    action: str | None = Query(None),
    entity_type: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=settings.audit_page_size_max),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(admin_only),
) -> AuditLogPage:
    start = end = None
    if start_date and end_date:
        start = datetime(start_date.year, start_date.month, start_date.day)
        end = datetime(end_date.year, end_date.month, end_date.day) + timedelta(days=1) - timedelta(microseconds=1)
    rows, total = await list_audit_logs(
        session,
        start=start,
        end=end,
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        page=page,
        limit=limit,
    )
    return AuditLogPage(
        logs=[
            AuditLogEntry(
                id=r.id,
                actor_user_id=r.actor_user_id,
                action=r.action,
                entity_type=r.entity_type,
                entity_id=r.entity_id,
                metadata=load_metadata(r),
                created_at=r.created_at,
            )
            for r in rows
        ],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit),
    )


@router.get("/stats", response_model=ClinicStatsResponse)
async def stats(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    provider_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(admin_only),
) -> ClinicStatsResponse:
    s = await get_clinic_stats(session, start_date=start_date, end_date=end_date, provider_id=provider_id)
    return ClinicStatsResponse(
        total_users=s.total_users,
        total_providers=s.total_providers,
        total_patients=s.total_patients,
        total_appointments=s.total_appointments,
        today_appointments=s.today_appointments,
        cancelled_appointments=s.cancelled_appointments,
        no_show_appointments=s.no_show_appointments,
        completed_appointments=s.completed_appointments,
        cancellation_rate=s.cancellation_rate,
        no_show_rate=s.no_show_rate,
        provider_utilization=[ProviderUtilizationOut(**vars(p)) for p in s.provider_utilization],
        daily_bookings=s.daily_bookings,
    )


@router.post("/users", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(admin_only),
    audit: AuditSink = Depends(get_audit_sink),
) -> UserPublic:
    user = await admin_create_user(session, current_user, body, audit=audit)
    await session.commit()
    return user_to_public(user)


@router.post("/users/{user_id}/archive", response_model=UserPublic)
async def archive(
    user_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(admin_only),
    audit: AuditSink = Depends(get_audit_sink),
) -> UserPublic:
    user = await archive_user(session, current_user, user_id, audit=audit)
    await session.commit()
    return user_to_public(user)


@router.delete("/users/{user_id}/archive", response_model=UserPublic)
async def restore(
    user_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(admin_only),
    audit: AuditSink = Depends(get_audit_sink),
) -> UserPublic:
    user = await restore_user(session, current_user, user_id, audit=audit)
    await session.commit()
    return user_to_public(user)
