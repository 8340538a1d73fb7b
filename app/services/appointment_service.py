"""Booking, rescheduling, cancellation and status transitions.

Every mutation re-validates against the conflict detector inside the write
transaction; the slot list a client saw earlier is never trusted.
"""
import logging
from datetime import date, datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidInput, NotFound, PolicyCutoffViolation, SlotUnavailable, Unauthorized
from app.core.timeutils import to_naive_utc, utc_naive_now
from app.models.appointment import (
    TERMINAL_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    AppointmentUpdate,
)
from app.models.user import User, UserRole
from app.services.audit_service import AuditAction, AuditSink, emit_audit
from app.services.conflict_service import has_conflict, lock_provider_schedule
from app.services.policy_service import can_cancel, can_reschedule, get_clinic_policy, is_subject_to_cutoff
from app.services.user_service import get_active_user_with_role, get_appointment_type

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Appointment"


def _validate_interval(start: datetime, end: datetime) -> None:
    if start >= end:
        raise InvalidInput("End time must be after start time")


def _resolve_parties(actor: User, data: AppointmentCreate) -> tuple[int, int]:
    """Returns (patient_id, provider_id) according to who is booking."""
    if actor.role == UserRole.PATIENT:
        if data.provider_id is None:
            raise InvalidInput("Provider ID is required")
        return actor.id, data.provider_id
    if actor.role == UserRole.PROVIDER:
        if data.patient_id is None:
            raise InvalidInput("Patient ID is required")
        return data.patient_id, actor.id
    if actor.role == UserRole.ADMIN:
        if data.patient_id is None or data.provider_id is None:
            raise InvalidInput("Both patient and provider IDs are required")
        return data.patient_id, data.provider_id
    raise Unauthorized("Unknown role")


async def _flush_or_unavailable(session: AsyncSession) -> None:
    # The PostgreSQL exclusion constraint reports a lost race as IntegrityError.
    try:
        await session.flush()
    except IntegrityError as e:
        logger.info("Booking rejected by storage constraint: %s", e.orig)
        raise SlotUnavailable() from e


async def book_appointment(
    session: AsyncSession,
    actor: User,
    data: AppointmentCreate,
    audit: AuditSink | None = None,
) -> Appointment:
    start = to_naive_utc(data.start_time)
    end = to_naive_utc(data.end_time)
    _validate_interval(start, end)
    patient_id, provider_id = _resolve_parties(actor, data)

    if await get_active_user_with_role(session, provider_id, UserRole.PROVIDER) is None:
        raise InvalidInput("Provider not found")
    if await get_active_user_with_role(session, patient_id, UserRole.PATIENT) is None:
        raise InvalidInput("Patient not found")

    title = (data.title or "").strip()
    if data.appointment_type_id is not None:
        appointment_type = await get_appointment_type(session, data.appointment_type_id)
        if appointment_type is None or appointment_type.is_archived:
            raise InvalidInput("Appointment type not found")
        title = title or appointment_type.name

    await lock_provider_schedule(session, provider_id)
    if await has_conflict(session, provider_id, start, end):
        raise SlotUnavailable()

    appointment = Appointment(
        patient_id=patient_id,
        provider_id=provider_id,
        appointment_type_id=data.appointment_type_id,
        title=title or DEFAULT_TITLE,
        description=data.description or None,
        start_time=start,
        end_time=end,
        status=AppointmentStatus.SCHEDULED,
    )
    session.add(appointment)
    await _flush_or_unavailable(session)
    # A concurrent booking may have committed between the check and the insert.
    if await has_conflict(session, provider_id, start, end, exclude_appointment_id=appointment.id):
        raise SlotUnavailable()
    await session.refresh(appointment)

    logger.info(
        "Appointment %s booked: provider=%s patient=%s %s-%s",
        appointment.id, provider_id, patient_id, start.isoformat(), end.isoformat(),
    )
    emit_audit(
        audit,
        actor.id,
        AuditAction.APPOINTMENT_CREATED,
        "Appointment",
        appointment.id,
        {
            "patient_id": patient_id,
            "provider_id": provider_id,
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
        },
    )
    return appointment


def _visible_to(actor: User, appointment: Appointment) -> bool:
    return actor.role == UserRole.ADMIN or actor.id in (appointment.patient_id, appointment.provider_id)


async def get_appointment(session: AsyncSession, actor: User, appointment_id: int) -> Appointment:
    result = await session.execute(select(Appointment).where(Appointment.id == appointment_id))
    appointment = result.scalar_one_or_none()
    if appointment is None or not _visible_to(actor, appointment):
        raise NotFound("Appointment not found")
    return appointment


def _require_scheduled(appointment: Appointment) -> None:
    if appointment.status in TERMINAL_STATUSES:
        raise InvalidInput(f"Appointment is already {appointment.status.lower()}")


async def reschedule_appointment(
    session: AsyncSession,
    actor: User,
    appointment_id: int,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    audit: AuditSink | None = None,
    now: datetime | None = None,
) -> Appointment:
    """Move an appointment. A missing end keeps the original duration."""
    if start_time is None and end_time is None:
        raise InvalidInput("A new start or end time is required")
    appointment = await get_appointment(session, actor, appointment_id)
    _require_scheduled(appointment)

    if actor.id == appointment.patient_id and is_subject_to_cutoff(actor.role):
        policy = await get_clinic_policy(session)
        if not can_reschedule(now or utc_naive_now(), appointment.start_time, policy.reschedule_cutoff_hours):
            raise PolicyCutoffViolation("reschedule", policy.reschedule_cutoff_hours)

    old_start, old_end = appointment.start_time, appointment.end_time
    new_start = to_naive_utc(start_time) if start_time is not None else old_start
    if end_time is not None:
        new_end = to_naive_utc(end_time)
    else:
        new_end = new_start + (old_end - old_start)
    _validate_interval(new_start, new_end)

    await lock_provider_schedule(session, appointment.provider_id)
    if await has_conflict(session, appointment.provider_id, new_start, new_end, exclude_appointment_id=appointment.id):
        raise SlotUnavailable("Time slot conflicts with another appointment")

    appointment.start_time = new_start
    appointment.end_time = new_end
    appointment.updated_at = utc_naive_now()
    session.add(appointment)
    await _flush_or_unavailable(session)
    if await has_conflict(session, appointment.provider_id, new_start, new_end, exclude_appointment_id=appointment.id):
        raise SlotUnavailable("Time slot conflicts with another appointment")
    await session.refresh(appointment)

    logger.info("Appointment %s rescheduled by user %s", appointment.id, actor.id)
    emit_audit(
        audit,
        actor.id,
        AuditAction.APPOINTMENT_RESCHEDULED,
        "Appointment",
        appointment.id,
        {
            "before": {"start_time": old_start.isoformat(), "end_time": old_end.isoformat()},
            "after": {"start_time": new_start.isoformat(), "end_time": new_end.isoformat()},
        },
    )
    return appointment


async def cancel_appointment(
    session: AsyncSession,
    actor: User,
    appointment_id: int,
    audit: AuditSink | None = None,
    now: datetime | None = None,
) -> Appointment:
    appointment = await get_appointment(session, actor, appointment_id)
    _require_scheduled(appointment)

    if actor.id == appointment.patient_id and is_subject_to_cutoff(actor.role):
        policy = await get_clinic_policy(session)
        if not can_cancel(now or utc_naive_now(), appointment.start_time, policy.cancellation_cutoff_hours):
            raise PolicyCutoffViolation("cancel", policy.cancellation_cutoff_hours)

    return await _transition(session, actor, appointment, AppointmentStatus.CANCELLED, AuditAction.APPOINTMENT_CANCELLED, audit)


async def _transition(
    session: AsyncSession,
    actor: User,
    appointment: Appointment,
    status: AppointmentStatus,
    action: AuditAction,
    audit: AuditSink | None,
) -> Appointment:
    previous = appointment.status
    appointment.status = status
    appointment.updated_at = utc_naive_now()
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    logger.info("Appointment %s: %s -> %s by user %s", appointment.id, previous, status, actor.id)
    emit_audit(
        audit,
        actor.id,
        action,
        "Appointment",
        appointment.id,
        {"before": {"status": previous}, "after": {"status": str(status)}},
    )
    return appointment


async def _provider_transition(
    session: AsyncSession,
    actor: User,
    appointment_id: int,
    status: AppointmentStatus,
    action: AuditAction,
    audit: AuditSink | None,
) -> Appointment:
    appointment = await get_appointment(session, actor, appointment_id)
    if actor.id != appointment.provider_id:
        raise Unauthorized(f"Only the provider can mark an appointment as {status.lower()}")
    _require_scheduled(appointment)
    return await _transition(session, actor, appointment, status, action, audit)


async def complete_appointment(
    session: AsyncSession, actor: User, appointment_id: int, audit: AuditSink | None = None
) -> Appointment:
    return await _provider_transition(
        session, actor, appointment_id, AppointmentStatus.COMPLETED, AuditAction.APPOINTMENT_COMPLETED, audit
    )


async def mark_no_show(
    session: AsyncSession, actor: User, appointment_id: int, audit: AuditSink | None = None
) -> Appointment:
    return await _provider_transition(
        session, actor, appointment_id, AppointmentStatus.NO_SHOW, AuditAction.APPOINTMENT_NO_SHOW, audit
    )


async def change_status(
    session: AsyncSession,
    actor: User,
    appointment_id: int,
    status: AppointmentStatus,
    audit: AuditSink | None = None,
    now: datetime | None = None,
) -> Appointment:
    if status == AppointmentStatus.CANCELLED:
        return await cancel_appointment(session, actor, appointment_id, audit=audit, now=now)
    if status == AppointmentStatus.COMPLETED:
        return await complete_appointment(session, actor, appointment_id, audit=audit)
    if status == AppointmentStatus.NO_SHOW:
        return await mark_no_show(session, actor, appointment_id, audit=audit)
    appointment = await get_appointment(session, actor, appointment_id)
    if appointment.status != status:
        raise InvalidInput(f"Cannot move a {appointment.status.lower()} appointment back to {status.lower()}")
    return appointment


async def update_appointment_details(
    session: AsyncSession,
    actor: User,
    appointment_id: int,
    data: AppointmentUpdate,
    audit: AuditSink | None = None,
) -> Appointment:
    """Free-text fields. Patients own notes/intake forms, providers own clinical notes."""
    appointment = await get_appointment(session, actor, appointment_id)
    is_patient = actor.id == appointment.patient_id
    is_provider = actor.id == appointment.provider_id
    changed: list[str] = []

    if data.title is not None:
        if not data.title.strip():
            raise InvalidInput("Title cannot be empty")
        appointment.title = data.title.strip()
        changed.append("title")
    if data.description is not None:
        appointment.description = data.description or None
        changed.append("description")
    if data.notes is not None:
        if not is_patient:
            raise Unauthorized("Only the patient can edit notes")
        appointment.notes = data.notes
        changed.append("notes")
    if data.intake_forms is not None:
        if not is_patient:
            raise Unauthorized("Only the patient can submit intake forms")
        appointment.intake_forms = data.intake_forms
        changed.append("intake_forms")
    if data.clinical_notes is not None:
        if not is_provider:
            raise Unauthorized("Only the provider can edit clinical notes")
        appointment.clinical_notes = data.clinical_notes
        changed.append("clinical_notes")

    if not changed:
        return appointment
    appointment.updated_at = utc_naive_now()
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    emit_audit(audit, actor.id, AuditAction.APPOINTMENT_UPDATED, "Appointment", appointment.id, {"fields": changed})
    return appointment


async def list_appointments(
    session: AsyncSession,
    actor: User,
    *,
    view: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    status: str | None = None,
    provider_id: int | None = None,
    search: str | None = None,
) -> list[Appointment]:
    """Appointments visible to the actor, ordered by start time.

    ``view`` narrows to the actor's appointments as "patient" or "provider";
    admins see every appointment when no view is given.
    """
    q = select(Appointment)
    if view == "patient":
        q = q.where(Appointment.patient_id == actor.id)
    elif view == "provider":
        q = q.where(Appointment.provider_id == actor.id)
    elif actor.role != UserRole.ADMIN:
        q = q.where(or_(Appointment.patient_id == actor.id, Appointment.provider_id == actor.id))

    if start_date and end_date:
        range_start = datetime(start_date.year, start_date.month, start_date.day)
        range_end = datetime(end_date.year, end_date.month, end_date.day) + timedelta(days=1)
        q = q.where(Appointment.start_time >= range_start, Appointment.start_time < range_end)
    if status:
        q = q.where(Appointment.status == status)
    if provider_id is not None:
        q = q.where(Appointment.provider_id == provider_id)
    if search:
        pattern = f"%{search}%"
        q = q.where(or_(Appointment.title.ilike(pattern), Appointment.description.ilike(pattern)))

    result = await session.execute(q.order_by(Appointment.start_time))
    return list(result.scalars().all())
