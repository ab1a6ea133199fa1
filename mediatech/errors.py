# mediatech/errors.py
from __future__ import annotations


class MediaTechError(Exception):
    """Base class for every error raised by the rental core."""


class InvalidTransition(MediaTechError):
    """A lifecycle operation was invoked from a status that does not allow it."""

    def __init__(self, operation: str, status, rental_number: str = ""):
        self.operation = operation
        self.status = status
        self.rental_number = rental_number
        label = getattr(status, "value", status)
        target = f"rental {rental_number}" if rental_number else "rental"
        super().__init__(f"Cannot {operation} {target} in status '{label}'")


class ValidationError(MediaTechError):
    """Malformed input to pricing, numbering or reservation."""


class PersistenceError(MediaTechError):
    """The storage layer failed to read or commit."""
