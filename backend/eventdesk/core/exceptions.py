"""
Error taxonomy shared by the engine and the API layer.

Every error carries a machine-readable `kind`, a human-readable message and
optional `details`. The API renders them as
{"error": {"kind": ..., "message": ..., "details": ...}} with `status_code`.

  ValidationError        400  caller's fault, fix the input
  BusinessRuleViolation  400  expected outcome, shown to the user
  NotFound               404  unknown id, possibly stale client state
  PermissionDenied       403  staff-only action or someone else's registration
  UpstreamFailure        500  row store / provider failure, message is opaque
  RateLimited            429  too many requests from one client
"""

from typing import Any, Optional


class EventDeskError(Exception):
    kind: str = "Error"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ValidationError(EventDeskError):
    kind = "ValidationError"
    status_code = 400


class BusinessRuleViolation(EventDeskError):
    status_code = 400


class DuplicateRegistration(BusinessRuleViolation):
    kind = "DuplicateRegistration"


class EventFull(BusinessRuleViolation):
    kind = "EventFull"


class VolunteerSlotsFull(BusinessRuleViolation):
    kind = "VolunteerSlotsFull"


class TimeConflict(BusinessRuleViolation):
    kind = "TimeConflict"


class WeeklyQuotaExceeded(BusinessRuleViolation):
    kind = "WeeklyQuotaExceeded"


class NotFound(EventDeskError):
    kind = "NotFound"
    status_code = 404


class EventNotFound(NotFound):
    kind = "EventNotFound"


class RegistrationNotFound(NotFound):
    kind = "RegistrationNotFound"


class UserNotFound(NotFound):
    kind = "UserNotFound"


class PermissionDenied(EventDeskError):
    kind = "PermissionDenied"
    status_code = 403


class UpstreamFailure(EventDeskError):
    kind = "UpstreamFailure"
    status_code = 500

    def __init__(self, message: str = "The request could not be completed. Please try again.",
                 cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class RateLimited(EventDeskError):
    kind = "RateLimited"
    status_code = 429

    def __init__(self, retry_after: int, details: Optional[dict[str, Any]] = None):
        super().__init__("Too many requests. Please try again later.", details)
        self.retry_after = retry_after
