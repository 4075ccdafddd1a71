import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class FinTrackError(Exception):
    """Base class for errors that map onto an HTTP status and an error body."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> dict:
        body: dict = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(FinTrackError, ValueError):
    status_code = 400


class NotFoundError(FinTrackError):
    status_code = 404


class DuplicateError(FinTrackError):
    status_code = 409


class ReferencedError(FinTrackError):
    status_code = 409


class AuthenticationError(FinTrackError):
    status_code = 401


class AuthorizationError(FinTrackError):
    status_code = 403


class InternalError(FinTrackError):
    status_code = 500


_UNIQUE_MARKERS = ("unique constraint", "duplicate key", "unique violation")
_FOREIGN_KEY_MARKERS = ("foreign key constraint", "violates foreign key")


def translate_integrity_error(exc: IntegrityError, label: str) -> FinTrackError:
    """
    Map a storage constraint violation onto the error taxonomy.
    The raw driver message is logged, never returned to the caller.
    """
    text = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    if any(marker in text for marker in _UNIQUE_MARKERS):
        return DuplicateError(f"{label} already exists")
    if any(marker in text for marker in _FOREIGN_KEY_MARKERS):
        return ReferencedError(f"{label} is referenced by other records")
    logger.error("Unexpected integrity error for %s: %s", label, text)
    return InternalError("Internal server error")
