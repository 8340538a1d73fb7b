from datetime import date as date_type
from datetime import datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from app.core.timeutils import utc_naive_now


class AvailabilityRule(SQLModel, table=True):
    """Recurring weekly open hours; one row per (provider, day_of_week)."""

    __tablename__ = "availability_rules"
    __table_args__ = (
        UniqueConstraint("provider_id", "day_of_week", name="uq_availability_rules_provider_day"),
    )
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="users.id", index=True)
    day_of_week: int  # 0 = Sunday
    start_time: str  # "HH:MM"
    end_time: str
    is_available: bool = True


class AvailabilityException(SQLModel, table=True):
    """One-off override of the weekly rule for a calendar date."""

    __tablename__ = "availability_exceptions"
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="users.id", index=True)
    date: date_type = Field(index=True)
    start_time: str | None = None
    end_time: str | None = None
    reason: str | None = None
    is_blocked: bool = True
    created_at: datetime = Field(default_factory=utc_naive_now)


class AvailabilityRuleCreate(SQLModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    is_available: bool = True


class AvailabilityRulePublic(SQLModel):
    id: int
    provider_id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool


class AvailabilityExceptionCreate(SQLModel):
    date: date_type
    start_time: str | None = None
    end_time: str | None = None
    reason: str | None = None
    is_blocked: bool = True


class AvailabilityExceptionPublic(SQLModel):
    id: int
    provider_id: int
    date: date_type
    start_time: str | None = None
    end_time: str | None = None
    reason: str | None = None
    is_blocked: bool
    created_at: datetime
