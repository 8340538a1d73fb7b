"""Clinic-wide cancellation and reschedule cutoffs.

The policy is a singleton row (id "default"). When the row is missing the
configured defaults are returned, so callers always get a usable policy.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import InvalidInput, Unauthorized
from app.core.timeutils import is_hhmm, parse_hhmm, utc_naive_now
from app.models.clinic_policy import DEFAULT_POLICY_ID, ClinicPolicy, ClinicPolicyUpdate
from app.models.user import User, UserRole
from app.services.audit_service import AuditAction, AuditSink, emit_audit

logger = logging.getLogger(__name__)


def default_policy() -> ClinicPolicy:
    return ClinicPolicy(
        id=DEFAULT_POLICY_ID,
        cancellation_cutoff_hours=settings.default_cancellation_cutoff_hours,
        reschedule_cutoff_hours=settings.default_reschedule_cutoff_hours,
        office_hours_start=settings.default_office_hours_start,
        office_hours_end=settings.default_office_hours_end,
    )


async def get_stored_policy(session: AsyncSession) -> ClinicPolicy | None:
    result = await session.execute(select(ClinicPolicy).where(ClinicPolicy.id == DEFAULT_POLICY_ID))
    return result.scalar_one_or_none()


async def get_clinic_policy(session: AsyncSession) -> ClinicPolicy:
    return await get_stored_policy(session) or default_policy()


def cutoff_instant(appointment_start: datetime, cutoff_hours: float) -> datetime:
    return appointment_start - timedelta(hours=cutoff_hours)


def is_within_cutoff(now: datetime, appointment_start: datetime, cutoff_hours: float) -> bool:
    return now <= cutoff_instant(appointment_start, cutoff_hours)


def can_cancel(now: datetime, appointment_start: datetime, cancellation_cutoff_hours: float) -> bool:
    return is_within_cutoff(now, appointment_start, cancellation_cutoff_hours)


def can_reschedule(now: datetime, appointment_start: datetime, reschedule_cutoff_hours: float) -> bool:
    return is_within_cutoff(now, appointment_start, reschedule_cutoff_hours)


def is_subject_to_cutoff(role: str) -> bool:
    """Providers and admins bypass the cutoff; only patients are gated."""
    return role == UserRole.PATIENT


async def update_clinic_policy(
    session: AsyncSession,
    actor: User,
    data: ClinicPolicyUpdate,
    audit: AuditSink | None = None,
) -> ClinicPolicy:
    if actor.role != UserRole.ADMIN:
        raise Unauthorized("Only admins can change the clinic policy")
    if not is_hhmm(data.office_hours_start) or not is_hhmm(data.office_hours_end):
        raise InvalidInput("Office hours must be in HH:MM format")
    if parse_hhmm(data.office_hours_start) >= parse_hhmm(data.office_hours_end):
        raise InvalidInput("Office hours end must be after start")
    if data.cancellation_cutoff_hours < 0 or data.reschedule_cutoff_hours < 0:
        raise InvalidInput("Cutoff hours cannot be negative")

    policy = await get_stored_policy(session)
    if policy is None:
        policy = ClinicPolicy(id=DEFAULT_POLICY_ID)
    policy.cancellation_cutoff_hours = data.cancellation_cutoff_hours
    policy.reschedule_cutoff_hours = data.reschedule_cutoff_hours
    policy.office_hours_start = data.office_hours_start
    policy.office_hours_end = data.office_hours_end
    policy.updated_at = utc_naive_now()
    session.add(policy)
    await session.flush()
    await session.refresh(policy)

    logger.info(
        "Clinic policy updated by user %s: cancel=%sh reschedule=%sh",
        actor.id,
        policy.cancellation_cutoff_hours,
        policy.reschedule_cutoff_hours,
    )
    emit_audit(
        audit,
        actor.id,
        AuditAction.CLINIC_POLICY_UPDATED,
        "ClinicPolicy",
        policy.id,
        {
            "cancellation_cutoff_hours": policy.cancellation_cutoff_hours,
            "reschedule_cutoff_hours": policy.reschedule_cutoff_hours,
        },
    )
    return policy
