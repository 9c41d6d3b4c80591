"""
Typed errors raised by the ticket lifecycle and settlement engine.

Business-rule errors carry a message fit for display to the operator.
StorageError and RecoveryFailed are system errors: they are logged with full
context and rendered to the caller without internals.
"""

from typing import Any, Optional


class ParkingError(Exception):
    """Base exception for all engine errors."""

    status_code = 400

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ParkingError):
    """Missing or malformed input; the caller can correct and resubmit."""

    status_code = 422


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(ParkingError):
    status_code = 404


class SlotNotFound(NotFoundError):
    pass


class TicketNotFound(NotFoundError):
    pass


# =============================================================================
# Business-rule conflicts
# =============================================================================


class ConflictError(ParkingError):
    status_code = 409


class SlotUnavailable(ConflictError):
    """Slot is not vacant (or is locked by an open ticket)."""

    pass


class AlreadyPaid(ConflictError):
    """Ticket is no longer pending."""

    pass


class TicketNotSettled(ConflictError):
    """Receipt or recovery requested for a ticket that was never paid."""

    pass


class ShiftAlreadyOpen(ConflictError):
    pass


class NoOpenShift(ConflictError):
    pass


class PaymentAlreadyExists(ConflictError):
    pass


class PaymentRecordMissing(ParkingError):
    """
    A paid ticket has no payment row. Raised by the ledger lookup and handled
    by the receipt flow, which runs recovery instead of failing.
    """

    status_code = 404


# =============================================================================
# System errors
# =============================================================================


class ParkingSystemError(ParkingError):
    status_code = 500


class StorageError(ParkingSystemError):
    pass


class RecoveryFailed(ParkingSystemError):
    """Payment could not be reconstructed from the stored ticket data."""

    pass
