from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_audit_sink, get_current_user, require_roles
from app.api.schemas.admin import WaitlistStatusUpdate
from app.core.db import get_session
from app.models.user import User, UserRole
from app.models.waitlist import WaitlistEntryCreate, WaitlistEntryPublic
from app.services.audit_service import AuditSink
from app.services.waitlist_service import entry_to_public, join_waitlist, list_waitlist, set_waitlist_status

router = APIRouter(prefix="/waitlist", tags=["waitlist"])


@router.get("", response_model=list[WaitlistEntryPublic])
async def get_waitlist(
    patient_id: int | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[WaitlistEntryPublic]:
    entries = await list_waitlist(session, current_user, patient_id=patient_id, status=status_filter)
    return [entry_to_public(e) for e in entries]


@router.post("", response_model=WaitlistEntryPublic, status_code=status.HTTP_201_CREATED)
async def join(
    body: WaitlistEntryCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.PATIENT)),
    audit: AuditSink = Depends(get_audit_sink),
) -> WaitlistEntryPublic:
    entry = await join_waitlist(session, current_user, body, audit=audit)
    await session.commit()
    return entry_to_public(entry)


@router.patch("/{entry_id}", response_model=WaitlistEntryPublic)
async def update_status(
    entry_id: int,
    body: WaitlistStatusUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    audit: AuditSink = Depends(get_audit_sink),
) -> WaitlistEntryPublic:
    entry = await set_waitlist_status(session, current_user, entry_id, body.status, audit=audit)
    await session.commit()
    return entry_to_public(entry)
