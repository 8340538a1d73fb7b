import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_audit_sink, get_current_user
from app.api.schemas.appointment import BookAppointmentRequest, CancelConfirmation, UpdateAppointmentRequest
from app.core.db import get_session
from app.models.appointment import Appointment, AppointmentCreate, AppointmentPublic, AppointmentUpdate
from app.models.user import User
from app.services.appointment_service import (
    book_appointment,
    cancel_appointment,
    change_status,
    get_appointment,
    list_appointments,
    reschedule_appointment,
    update_appointment_details,
)
from app.services.audit_service import AuditSink

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic.model_validate(a)


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book(
    body: BookAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    audit: AuditSink = Depends(get_audit_sink),
) -> AppointmentPublic:
    data = AppointmentCreate.model_validate(body.model_dump())
    appointment = await book_appointment(session, current_user, data, audit=audit)
    await session.commit()
    return _to_public(appointment)


@router.get("", response_model=list[AppointmentPublic])
async def list_my_appointments(
    role: str | None = Query(None, pattern="^(patient|provider)$"),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    provider_id: int | None = Query(None),
    search: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[AppointmentPublic]:
    appointments = await list_appointments(
        session,
        current_user,
        view=role,
        start_date=start_date,
        end_date=end_date,
        status=status_filter,
        provider_id=provider_id,
        search=search,
    )
    return [_to_public(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def get_one(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    return _to_public(await get_appointment(session, current_user, appointment_id))


@router.patch("/{appointment_id}", response_model=AppointmentPublic)
async def update(
    appointment_id: int,
    body: UpdateAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    audit: AuditSink = Depends(get_audit_sink),
) -> AppointmentPublic:
    appointment = await get_appointment(session, current_user, appointment_id)
    if body.start_time is not None or body.end_time is not None:
        appointment = await reschedule_appointment(
            session, current_user, appointment_id, body.start_time, body.end_time, audit=audit
        )
    details = AppointmentUpdate(
        title=body.title,
        description=body.description,
        notes=body.notes,
        clinical_notes=body.clinical_notes,
        intake_forms=body.intake_forms,
    )
    if details.model_dump(exclude_none=True):
        appointment = await update_appointment_details(session, current_user, appointment_id, details, audit=audit)
    if body.status is not None:
        appointment = await change_status(session, current_user, appointment_id, body.status, audit=audit)
    await session.commit()
    return _to_public(appointment)


@router.delete("/{appointment_id}", response_model=CancelConfirmation)
async def cancel(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    audit: AuditSink = Depends(get_audit_sink),
) -> CancelConfirmation:
    appointment = await cancel_appointment(session, current_user, appointment_id, audit=audit)
    await session.commit()
    return CancelConfirmation(id=appointment.id, status=appointment.status)
