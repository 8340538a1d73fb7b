from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.db import async_session_maker
from app.models.audit_log import AuditLog
from app.services.audit_service import (
    AuditAction,
    AuditEvent,
    emit_audit,
    list_audit_logs,
    load_metadata,
    record_audit_event,
)
from tests.conftest import FailingAuditSink, RecordingAuditSink


def test_emit_audit_builds_event() -> None:
    sink = RecordingAuditSink()

    emit_audit(sink, 7, AuditAction.APPOINTMENT_CREATED, "Appointment", 42, {"provider_id": 3})

    assert sink.events == [
        AuditEvent(
            actor_user_id=7,
            action="APPOINTMENT_CREATED",
            entity_type="Appointment",
            entity_id="42",
            metadata={"provider_id": 3},
        )
    ]


def test_emit_audit_without_sink_is_a_no_op() -> None:
    emit_audit(None, 1, AuditAction.USER_CREATED, "User", 1)


def test_emit_audit_swallows_sink_errors() -> None:
    emit_audit(FailingAuditSink(), 1, AuditAction.USER_CREATED, "User", 1)


async def test_record_audit_event_persists_row(session, admin) -> None:
    event = AuditEvent(
        actor_user_id=admin.id,
        action=AuditAction.CLINIC_POLICY_UPDATED,
        entity_type="ClinicPolicy",
        entity_id="default",
        metadata={"at": datetime(2030, 1, 7, 9, 0)},
    )

    await record_audit_event(event, async_session_maker)

    rows, total = await list_audit_logs(session)
    assert total == 1
    assert rows[0].action == "CLINIC_POLICY_UPDATED"
    assert load_metadata(rows[0]) == {"at": "2030-01-07T09:00:00"}


async def test_record_audit_event_never_raises(tmp_path) -> None:
    # Empty database without an audit_logs table.
    broken_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    broken_maker = async_sessionmaker(broken_engine, class_=AsyncSession, expire_on_commit=False)

    await record_audit_event(AuditEvent(actor_user_id=1, action="X", entity_type="Y"), broken_maker)

    await broken_engine.dispose()


async def test_list_audit_logs_filters_and_paginates(session, admin, patient) -> None:
    for i in range(3):
        session.add(AuditLog(actor_user_id=admin.id, action="USER_CREATED", entity_type="User", entity_id=str(i)))
    session.add(AuditLog(actor_user_id=patient.id, action="APPOINTMENT_CREATED", entity_type="Appointment"))
    await session.commit()

    rows, total = await list_audit_logs(session, actor_user_id=admin.id, page=1, limit=2)
    assert total == 3
    assert len(rows) == 2

    rows, total = await list_audit_logs(session, entity_type="Appointment")
    assert total == 1
    assert rows[0].actor_user_id == patient.id
