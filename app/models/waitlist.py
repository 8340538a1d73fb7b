from datetime import datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from app.core.timeutils import utc_naive_now


class WaitlistStatus(StrEnum):
    ACTIVE = "active"
    NOTIFIED = "notified"
    BOOKED = "booked"


class WaitlistEntry(SQLModel, table=True):
    __tablename__ = "waitlist_entries"
    id: int | None = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="users.id", index=True)
    appointment_type_id: int = Field(foreign_key="appointment_types.id")
    provider_id: int | None = Field(default=None, foreign_key="users.id")
    preferred_days: str | None = None  # JSON list of day_of_week ints
    status: str = Field(default=WaitlistStatus.ACTIVE, index=True)
    created_at: datetime = Field(default_factory=utc_naive_now)


class WaitlistEntryCreate(SQLModel):
    appointment_type_id: int
    provider_id: int | None = None
    preferred_days: list[int] | None = None


class WaitlistEntryPublic(SQLModel):
    id: int
    patient_id: int
    appointment_type_id: int
    provider_id: int | None = None
    preferred_days: list[int] | None = None
    status: str
    created_at: datetime
