from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_audit_sink, require_roles
from app.core.db import get_session
from app.models.appointment_type import AppointmentTypeCreate, AppointmentTypePublic
from app.models.user import ProviderPublic, User, UserRole
from app.services.audit_service import AuditSink
from app.services.user_service import create_appointment_type, list_appointment_types, list_providers

router = APIRouter(tags=["directory"])


@router.get("/providers", response_model=list[ProviderPublic])
async def providers(session: AsyncSession = Depends(get_session)) -> list[ProviderPublic]:
    return [ProviderPublic(id=p.id, full_name=p.full_name, email=p.email) for p in await list_providers(session)]


@router.get("/appointment-types", response_model=list[AppointmentTypePublic])
async def appointment_types(
    active_only: bool = Query(False),
    session: AsyncSession = Depends(get_session),
) -> list[AppointmentTypePublic]:
    types = await list_appointment_types(session, active_only=active_only)
    return [AppointmentTypePublic.model_validate(t) for t in types]


@router.post("/appointment-types", response_model=AppointmentTypePublic, status_code=status.HTTP_201_CREATED)
async def add_appointment_type(
    body: AppointmentTypeCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    audit: AuditSink = Depends(get_audit_sink),
) -> AppointmentTypePublic:
    appointment_type = await create_appointment_type(session, current_user, body, audit=audit)
    await session.commit()
    return AppointmentTypePublic.model_validate(appointment_type)
