import pytest

from app.core.errors import InvalidInput, NotFound, Unauthorized
from app.models.appointment_type import AppointmentType
from app.models.waitlist import WaitlistEntryCreate, WaitlistStatus
from app.services.audit_service import AuditAction
from app.services.waitlist_service import entry_to_public, join_waitlist, list_waitlist, set_waitlist_status


@pytest.fixture
async def consult(session) -> AppointmentType:
    appointment_type = AppointmentType(name="Consultation", duration_minutes=45)
    session.add(appointment_type)
    await session.commit()
    await session.refresh(appointment_type)
    return appointment_type


async def test_patient_joins_waitlist(session, patient, provider, consult, audit_sink) -> None:
    entry = await join_waitlist(
        session,
        patient,
        WaitlistEntryCreate(appointment_type_id=consult.id, provider_id=provider.id, preferred_days=[3, 1, 1]),
        audit=audit_sink,
    )

    public = entry_to_public(entry)
    assert public.status == WaitlistStatus.ACTIVE
    assert public.preferred_days == [1, 3]
    assert audit_sink.actions == [AuditAction.WAITLIST_ENTRY_CREATED]


async def test_provider_cannot_join_waitlist(session, provider, consult) -> None:
    with pytest.raises(Unauthorized):
        await join_waitlist(session, provider, WaitlistEntryCreate(appointment_type_id=consult.id))


async def test_waitlist_rejects_unknown_appointment_type(session, patient) -> None:
    with pytest.raises(InvalidInput):
        await join_waitlist(session, patient, WaitlistEntryCreate(appointment_type_id=9999))


async def test_waitlist_rejects_bad_preferred_day(session, patient, consult) -> None:
    with pytest.raises(InvalidInput):
        await join_waitlist(session, patient, WaitlistEntryCreate(appointment_type_id=consult.id, preferred_days=[7]))


async def test_patients_only_see_their_own_entries(session, patient, other_patient, admin, consult) -> None:
    await join_waitlist(session, patient, WaitlistEntryCreate(appointment_type_id=consult.id))
    await join_waitlist(session, other_patient, WaitlistEntryCreate(appointment_type_id=consult.id))
    await session.commit()

    assert [e.patient_id for e in await list_waitlist(session, patient)] == [patient.id]
    assert len(await list_waitlist(session, admin)) == 2
    assert len(await list_waitlist(session, admin, patient_id=other_patient.id)) == 1


async def test_admin_marks_entry_notified(session, patient, admin, consult, audit_sink) -> None:
    entry = await join_waitlist(session, patient, WaitlistEntryCreate(appointment_type_id=consult.id))
    await session.commit()

    updated = await set_waitlist_status(session, admin, entry.id, WaitlistStatus.NOTIFIED, audit=audit_sink)

    assert updated.status == WaitlistStatus.NOTIFIED
    assert audit_sink.actions == [AuditAction.WAITLIST_ENTRY_NOTIFIED]


async def test_set_status_on_missing_entry(session, admin) -> None:
    with pytest.raises(NotFound):
        await set_waitlist_status(session, admin, 9999, WaitlistStatus.BOOKED)
