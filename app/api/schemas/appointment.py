from datetime import date as date_type
from datetime import datetime

from pydantic import BaseModel, Field

from app.models.appointment import AppointmentStatus


class AvailableSlotsResponse(BaseModel):
    date: date_type
    provider_id: int
    duration_minutes: int
    slots: list[datetime]


class BookAppointmentRequest(BaseModel):
    start_time: datetime
    end_time: datetime
    provider_id: int | None = None
    patient_id: int | None = None  # for providers and admins booking on a patient's behalf
    appointment_type_id: int | None = None
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None


class UpdateAppointmentRequest(BaseModel):
    """PATCH body: any combination of a reschedule, a status change and detail edits."""

    start_time: datetime | None = None
    end_time: datetime | None = None
    status: AppointmentStatus | None = None
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    notes: str | None = None
    clinical_notes: str | None = None
    intake_forms: str | None = None


class CancelConfirmation(BaseModel):
    id: int
    status: str
    message: str = "Appointment cancelled"
