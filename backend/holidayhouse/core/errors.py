# holidayhouse/core/errors.py
"""
Errors raised by the booking core.

Every error carries a human readable message plus optional details and knows
the HTTP status it maps to; main.py renders them as {"error": ..., **details}.
"""
from typing import Any, Dict, Optional


class BookingServiceError(Exception):
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.details}


class ValidationError(BookingServiceError):
    """Malformed or missing input; raised before the store is touched."""

    status_code = 400


class NotFoundError(BookingServiceError):
    status_code = 404


class AccessDeniedError(BookingServiceError):
    status_code = 403


class ConflictError(BookingServiceError):
    """
    The requested dates overlap a PENDING/APPROVED booking.

    `conflicting` is the clashing booking when it is known. A write conflict
    detected by the database itself (serialization failure, exclusion
    constraint) has no booking to report.
    """

    status_code = 409

    def __init__(self, message: str, conflicting: Optional[Any] = None):
        details: Dict[str, Any] = {}
        if conflicting is not None:
            details["conflicting_booking"] = {
                "id": conflicting.id,
                "status": _value(conflicting.status),
                "start_date": conflicting.start_date.isoformat(),
                "end_date": conflicting.end_date.isoformat(),
            }
        super().__init__(message, **details)
        self.conflicting = conflicting


class InvalidTransitionError(BookingServiceError):
    status_code = 400


class ConfigurationError(BookingServiceError):
    """No fee configuration could be resolved (or created)."""

    status_code = 500


def _value(status: Any) -> Any:
    return getattr(status, "value", status)
