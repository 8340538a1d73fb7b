from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_audit_sink, get_current_user, require_roles
from app.core.db import get_session
from app.models.clinic_policy import ClinicPolicy, ClinicPolicyPublic, ClinicPolicyUpdate
from app.models.user import User, UserRole
from app.services.audit_service import AuditSink
from app.services.policy_service import default_policy, get_stored_policy, update_clinic_policy

router = APIRouter(prefix="/policy", tags=["policy"])


def _to_public(policy: ClinicPolicy, is_default: bool = False) -> ClinicPolicyPublic:
    return ClinicPolicyPublic(
        cancellation_cutoff_hours=policy.cancellation_cutoff_hours,
        reschedule_cutoff_hours=policy.reschedule_cutoff_hours,
        office_hours_start=policy.office_hours_start,
        office_hours_end=policy.office_hours_end,
        is_default=is_default,
    )


@router.get("", response_model=ClinicPolicyPublic)
async def read_policy(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> ClinicPolicyPublic:
    """Any signed-in user may read the cutoffs so clients can explain them."""
    stored = await get_stored_policy(session)
    if stored is None:
        return _to_public(default_policy(), is_default=True)
    return _to_public(stored)


@router.post("", response_model=ClinicPolicyPublic)
async def write_policy(
    body: ClinicPolicyUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    audit: AuditSink = Depends(get_audit_sink),
) -> ClinicPolicyPublic:
    policy = await update_clinic_policy(session, current_user, body, audit=audit)
    await session.commit()
    return _to_public(policy)
