import json
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidInput, NotFound, Unauthorized
from app.models.user import User, UserRole
from app.models.waitlist import WaitlistEntry, WaitlistEntryCreate, WaitlistEntryPublic, WaitlistStatus
from app.services.audit_service import AuditAction, AuditSink, emit_audit
from app.services.user_service import get_active_user_with_role, get_appointment_type

logger = logging.getLogger(__name__)

_STATUS_ACTIONS = {
    WaitlistStatus.NOTIFIED: AuditAction.WAITLIST_ENTRY_NOTIFIED,
    WaitlistStatus.BOOKED: AuditAction.WAITLIST_ENTRY_BOOKED,
}


async def join_waitlist(
    session: AsyncSession,
    actor: User,
    data: WaitlistEntryCreate,
    audit: AuditSink | None = None,
) -> WaitlistEntry:
    if actor.role != UserRole.PATIENT:
        raise Unauthorized("Only patients can join the waitlist")
    appointment_type = await get_appointment_type(session, data.appointment_type_id)
    if appointment_type is None or appointment_type.is_archived:
        raise InvalidInput("Appointment type not found")
    if data.provider_id is not None:
        if await get_active_user_with_role(session, data.provider_id, UserRole.PROVIDER) is None:
            raise InvalidInput("Provider not found")
    if data.preferred_days and any(not 0 <= d <= 6 for d in data.preferred_days):
        raise InvalidInput("Preferred days must be between 0 (Sunday) and 6 (Saturday)")

    entry = WaitlistEntry(
        patient_id=actor.id,
        appointment_type_id=data.appointment_type_id,
        provider_id=data.provider_id,
        preferred_days=json.dumps(sorted(set(data.preferred_days))) if data.preferred_days else None,
        status=WaitlistStatus.ACTIVE,
    )
    session.add(entry)
    await session.flush()
    await session.refresh(entry)
    emit_audit(
        audit,
        actor.id,
        AuditAction.WAITLIST_ENTRY_CREATED,
        "WaitlistEntry",
        entry.id,
        {"appointment_type_id": entry.appointment_type_id, "provider_id": entry.provider_id},
    )
    return entry


async def list_waitlist(
    session: AsyncSession,
    actor: User,
    patient_id: int | None = None,
    status: str | None = None,
) -> list[WaitlistEntry]:
    q = select(WaitlistEntry)
    if actor.role == UserRole.PATIENT:
        q = q.where(WaitlistEntry.patient_id == actor.id)
    elif actor.role == UserRole.ADMIN:
        if patient_id is not None:
            q = q.where(WaitlistEntry.patient_id == patient_id)
    else:
        raise Unauthorized("Only patients and admins can view the waitlist")
    if status:
        q = q.where(WaitlistEntry.status == status)
    result = await session.execute(q.order_by(WaitlistEntry.created_at.desc(), WaitlistEntry.id.desc()))
    return list(result.scalars().all())


async def set_waitlist_status(
    session: AsyncSession,
    actor: User,
    entry_id: int,
    status: WaitlistStatus,
    audit: AuditSink | None = None,
) -> WaitlistEntry:
    if actor.role != UserRole.ADMIN:
        raise Unauthorized("Only admins can update waitlist entries")
    result = await session.execute(select(WaitlistEntry).where(WaitlistEntry.id == entry_id))
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFound("Waitlist entry not found")
    entry.status = status
    session.add(entry)
    await session.flush()
    await session.refresh(entry)
    action = _STATUS_ACTIONS.get(status)
    if action is not None:
        emit_audit(audit, actor.id, action, "WaitlistEntry", entry.id, {"status": str(status)})
    return entry


def entry_to_public(entry: WaitlistEntry) -> WaitlistEntryPublic:
    days = json.loads(entry.preferred_days) if entry.preferred_days else None
    return WaitlistEntryPublic(
        id=entry.id,
        patient_id=entry.patient_id,
        appointment_type_id=entry.appointment_type_id,
        provider_id=entry.provider_id,
        preferred_days=days,
        status=entry.status,
        created_at=entry.created_at,
    )
