from sqlmodel import Field, SQLModel


class AppointmentType(SQLModel, table=True):
    __tablename__ = "appointment_types"
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: str | None = None
    duration_minutes: int = 30
    buffer_minutes: int = 0
    price: float | None = None
    is_active: bool = True
    is_archived: bool = False


class AppointmentTypeCreate(SQLModel):
    name: str = Field(min_length=1)
    description: str | None = None
    duration_minutes: int = Field(default=30, gt=0)
    buffer_minutes: int = Field(default=0, ge=0)
    price: float | None = Field(default=None, ge=0)
    is_active: bool = True


class AppointmentTypePublic(SQLModel):
    id: int
    name: str
    description: str | None = None
    duration_minutes: int
    buffer_minutes: int
    price: float | None = None
    is_active: bool
