"""Best-effort audit trail.

Mutations hand an :class:`AuditEvent` to an :class:`AuditSink`. Writing the
event happens outside the request transaction and must never fail the
mutation that produced it.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Protocol

from fastapi import BackgroundTasks
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.db import async_session_maker
from app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditAction(StrEnum):
    APPOINTMENT_CREATED = "APPOINTMENT_CREATED"
    APPOINTMENT_RESCHEDULED = "APPOINTMENT_RESCHEDULED"
    APPOINTMENT_CANCELLED = "APPOINTMENT_CANCELLED"
    APPOINTMENT_COMPLETED = "APPOINTMENT_COMPLETED"
    APPOINTMENT_NO_SHOW = "APPOINTMENT_NO_SHOW"
    APPOINTMENT_UPDATED = "APPOINTMENT_UPDATED"
    AVAILABILITY_UPDATED = "AVAILABILITY_UPDATED"
    AVAILABILITY_EXCEPTION_CREATED = "AVAILABILITY_EXCEPTION_CREATED"
    AVAILABILITY_EXCEPTION_DELETED = "AVAILABILITY_EXCEPTION_DELETED"
    APPOINTMENT_TYPE_CREATED = "APPOINTMENT_TYPE_CREATED"
    USER_CREATED = "USER_CREATED"
    USER_ARCHIVED = "USER_ARCHIVED"
    USER_RESTORED = "USER_RESTORED"
    CLINIC_POLICY_UPDATED = "CLINIC_POLICY_UPDATED"
    WAITLIST_ENTRY_CREATED = "WAITLIST_ENTRY_CREATED"
    WAITLIST_ENTRY_NOTIFIED = "WAITLIST_ENTRY_NOTIFIED"
    WAITLIST_ENTRY_BOOKED = "WAITLIST_ENTRY_BOOKED"


@dataclass(frozen=True)
class AuditEvent:
    actor_user_id: int
    action: str
    entity_type: str
    entity_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None: ...


class BackgroundAuditSink:
    """Writes audit events after the response via FastAPI background tasks."""

    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def emit(self, event: AuditEvent) -> None:
        self._background_tasks.add_task(record_audit_event, event)


def emit_audit(
    sink: AuditSink | None,
    actor_user_id: int,
    action: AuditAction,
    entity_type: str,
    entity_id: int | str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    if sink is None:
        return
    event = AuditEvent(
        actor_user_id=actor_user_id,
        action=str(action),
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        metadata=metadata or {},
    )
    try:
        sink.emit(event)
    except Exception as e:
        logger.exception("Failed to queue audit event %s: %s", event.action, e)


def _dump_metadata(metadata: dict[str, Any]) -> str | None:
    if not metadata:
        return None
    return json.dumps(metadata, default=lambda v: v.isoformat() if isinstance(v, datetime) else str(v))


async def record_audit_event(
    event: AuditEvent,
    session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
) -> None:
    """Persist one audit event in its own session. Never raises."""
    try:
        async with session_maker() as session:
            session.add(
                AuditLog(
                    actor_user_id=event.actor_user_id,
                    action=event.action,
                    entity_type=event.entity_type,
                    entity_id=event.entity_id,
                    metadata_json=_dump_metadata(event.metadata),
                )
            )
            await session.commit()
    except Exception as e:
        logger.exception("Failed to log audit event %s: %s", event.action, e)


def load_metadata(row: AuditLog) -> dict[str, Any] | None:
    if not row.metadata_json:
        return None
    try:
        return json.loads(row.metadata_json)
    except ValueError:
        logger.warning("Audit log %s has unreadable metadata", row.id)
        return None


async def list_audit_logs(
    session: AsyncSession,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    actor_user_id: int | None = None,
    action: str | None = None,
    entity_type: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    """Newest first. Returns (page of rows, total matching)."""
    conditions = []
    if start and end:
        conditions.append(AuditLog.created_at >= start)
        conditions.append(AuditLog.created_at <= end)
    if actor_user_id is not None:
        conditions.append(AuditLog.actor_user_id == actor_user_id)
    if action:
        conditions.append(AuditLog.action == action)
    if entity_type:
        conditions.append(AuditLog.entity_type == entity_type)

    total = (await session.execute(select(func.count()).select_from(AuditLog).where(*conditions))).scalar_one()
    q = (
        select(AuditLog)
        .where(*conditions)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await session.execute(q)
    return list(result.scalars().all()), total
