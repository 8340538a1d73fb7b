from datetime import datetime
from enum import StrEnum

from sqlalchemy import CheckConstraint, Index
from sqlmodel import Field, SQLModel

from app.core.timeutils import utc_naive_now


class AppointmentStatus(StrEnum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
)


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_provider_time", "provider_id", "start_time", "end_time"),
        CheckConstraint("start_time < end_time", name="ck_appointments_time_order"),
    )
    id: int | None = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="users.id", index=True)
    provider_id: int = Field(foreign_key="users.id", index=True)
    appointment_type_id: int | None = Field(default=None, foreign_key="appointment_types.id")
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    status: str = Field(default=AppointmentStatus.SCHEDULED, index=True)
    clinical_notes: str | None = None
    notes: str | None = None
    intake_forms: str | None = None
    payment_status: str | None = None
    created_at: datetime = Field(default_factory=utc_naive_now)
    updated_at: datetime = Field(default_factory=utc_naive_now)


class AppointmentCreate(SQLModel):
    """Booking input; which party ids are required depends on the caller's role."""

    start_time: datetime
    end_time: datetime
    provider_id: int | None = None
    patient_id: int | None = None
    appointment_type_id: int | None = None
    title: str | None = None
    description: str | None = None


class AppointmentUpdate(SQLModel):
    title: str | None = None
    description: str | None = None
    notes: str | None = None
    clinical_notes: str | None = None
    intake_forms: str | None = None


class AppointmentPublic(SQLModel):
    id: int
    patient_id: int
    provider_id: int
    appointment_type_id: int | None = None
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    status: str
    clinical_notes: str | None = None
    notes: str | None = None
    intake_forms: str | None = None
    payment_status: str | None = None
    created_at: datetime
    updated_at: datetime
