from app.models.user import (
    ProviderPublic,
    User,
    UserCreate,
    UserProfile,
    UserProfileUpdate,
    UserPublic,
    UserRole,
)
from app.models.appointment_type import AppointmentType, AppointmentTypeCreate, AppointmentTypePublic
from app.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentUpdate,
)
from app.models.availability import (
    AvailabilityException,
    AvailabilityExceptionCreate,
    AvailabilityExceptionPublic,
    AvailabilityRule,
    AvailabilityRuleCreate,
    AvailabilityRulePublic,
)
from app.models.clinic_policy import ClinicPolicy, ClinicPolicyPublic, ClinicPolicyUpdate
from app.models.waitlist import WaitlistEntry, WaitlistEntryCreate, WaitlistEntryPublic, WaitlistStatus
from app.models.audit_log import AuditLog

__all__ = [
    "User",
    "UserCreate",
    "UserPublic",
    "UserProfile",
    "UserProfileUpdate",
    "UserRole",
    "ProviderPublic",
    "AppointmentType",
    "AppointmentTypeCreate",
    "AppointmentTypePublic",
    "Appointment",
    "AppointmentCreate",
    "AppointmentPublic",
    "AppointmentStatus",
    "AppointmentUpdate",
    "AvailabilityException",
    "AvailabilityExceptionCreate",
    "AvailabilityExceptionPublic",
    "AvailabilityRule",
    "AvailabilityRuleCreate",
    "AvailabilityRulePublic",
    "ClinicPolicy",
    "ClinicPolicyPublic",
    "ClinicPolicyUpdate",
    "WaitlistEntry",
    "WaitlistEntryCreate",
    "WaitlistEntryPublic",
    "WaitlistStatus",
    "AuditLog",
]
