from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.models.waitlist import WaitlistStatus


class AuditLogEntry(BaseModel):
    id: int
    actor_user_id: int
    action: str
    entity_type: str
    entity_id: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime


class AuditLogPage(BaseModel):
    logs: list[AuditLogEntry]
    total: int
    page: int
    limit: int
    total_pages: int


class ProviderUtilizationOut(BaseModel):
    provider_id: int
    provider_name: str
    booked_minutes: float
    available_minutes: float
    utilization: float


class ClinicStatsResponse(BaseModel):
    total_users: int
    total_providers: int
    total_patients: int
    total_appointments: int
    today_appointments: int
    cancelled_appointments: int
    no_show_appointments: int
    completed_appointments: int
    cancellation_rate: float
    no_show_rate: float
    provider_utilization: list[ProviderUtilizationOut]
    daily_bookings: dict[str, int]


class WaitlistStatusUpdate(BaseModel):
    status: WaitlistStatus
