from datetime import date, datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from app.core.timeutils import utc_naive_now


class UserRole(StrEnum):
    PATIENT = "PATIENT"
    PROVIDER = "PROVIDER"
    ADMIN = "ADMIN"


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True)
    full_name: str | None = None
    phone: str | None = None
    role: str = Field(default=UserRole.PATIENT, index=True)


class User(UserBase, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    hashed_password: str
    date_of_birth: date | None = None
    address: str | None = None
    profile_complete: bool = False
    is_archived: bool = False
    archived_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_naive_now)


class UserCreate(SQLModel):
    email: str
    password: str
    full_name: str | None = None
    phone: str | None = None
    role: UserRole = UserRole.PATIENT


class UserPublic(SQLModel):
    id: int
    email: str
    full_name: str | None = None
    phone: str | None = None
    role: str
    is_archived: bool = False


class UserProfile(SQLModel):
    full_name: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    address: str | None = None
    profile_complete: bool = False


class UserProfileUpdate(SQLModel):
    """Fields left out of the request are unchanged; explicit nulls clear them."""

    full_name: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    address: str | None = None


class ProviderPublic(SQLModel):
    id: int
    full_name: str | None = None
    email: str
