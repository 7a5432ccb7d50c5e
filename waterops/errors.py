"""
Error taxonomy for the water operations service.

Every error the store, aggregator or report pipeline raises on purpose
derives from ``WaterOpsError`` and carries the HTTP status the API should
answer with. The FastAPI exception handler in ``waterops.api.app`` turns
them into ``{"detail": message}`` responses.
"""

from typing import Any, Dict, Optional


class WaterOpsError(Exception):
    """Base exception for expected, caller-facing failures."""

    status_code: int = 400

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
        }


class RecordNotFound(WaterOpsError):
    """Unknown id on get/update."""

    status_code = 404


class RecordValidationError(WaterOpsError):
    """Malformed field values or an illegal state transition."""

    status_code = 400


class DateRangeError(WaterOpsError):
    """Unparseable dates, or an end date before the start date."""

    status_code = 400


class UnknownEntityKind(WaterOpsError):
    status_code = 400


class UnsupportedFormatError(WaterOpsError):
    status_code = 400


class ConcurrentUpdateError(WaterOpsError):
    """A record kept changing underneath an update."""

    status_code = 409
