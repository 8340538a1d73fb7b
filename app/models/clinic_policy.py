from datetime import datetime

from sqlmodel import Field, SQLModel

from app.core.timeutils import utc_naive_now

DEFAULT_POLICY_ID = "default"


class ClinicPolicy(SQLModel, table=True):
    __tablename__ = "clinic_policy"
    id: str = Field(default=DEFAULT_POLICY_ID, primary_key=True)
    cancellation_cutoff_hours: float = 24
    reschedule_cutoff_hours: float = 12
    office_hours_start: str = "09:00"
    office_hours_end: str = "17:00"
    updated_at: datetime = Field(default_factory=utc_naive_now)


class ClinicPolicyUpdate(SQLModel):
    cancellation_cutoff_hours: float = Field(ge=0)
    reschedule_cutoff_hours: float = Field(ge=0)
    office_hours_start: str
    office_hours_end: str


class ClinicPolicyPublic(SQLModel):
    cancellation_cutoff_hours: float
    reschedule_cutoff_hours: float
    office_hours_start: str
    office_hours_end: str
    is_default: bool = False
