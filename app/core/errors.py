"""Scheduling errors raised by the service layer.

Each error maps to a single HTTP status in ``app.main``; services never build
HTTP responses themselves.
"""
from typing import Any


class SchedulingError(Exception):
    status_code: int = 400
    code: str = "SchedulingError"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def payload(self) -> dict[str, Any]:
        return {"detail": self.detail, "error": self.code}


class InvalidInput(SchedulingError):
    status_code = 400
    code = "InvalidInput"


class SlotUnavailable(SchedulingError):
    status_code = 409
    code = "SlotUnavailable"

    def __init__(self, detail: str = "Time slot is already booked") -> None:
        super().__init__(detail)


class PolicyCutoffViolation(SchedulingError):
    status_code = 400
    code = "PolicyCutoffViolation"

    def __init__(self, action: str, cutoff_hours: float) -> None:
        hours = int(cutoff_hours) if float(cutoff_hours).is_integer() else cutoff_hours
        super().__init__(f"Cannot {action}. Must {action} at least {hours} hours before the appointment.")
        self.action = action
        self.cutoff_hours = cutoff_hours

    def payload(self) -> dict[str, Any]:
        data = super().payload()
        data["cutoff_hours"] = self.cutoff_hours
        return data


class NotFound(SchedulingError):
    status_code = 404
    code = "NotFound"


class Unauthorized(SchedulingError):
    status_code = 403
    code = "Unauthorized"
