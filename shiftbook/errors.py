"""
Exceptions raised by the booking core.
Raised in the services and translated to HTTP responses in api.py.
"""


class ShiftbookError(Exception):
    """Base exception for all booking core errors."""

    pass


class InvalidTimeFormat(ShiftbookError, ValueError):
    """Raised when a stored time-of-day is not "HH:MM" or "HH:MM:SS"."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid time format: {value!r}")


class MissingShiftWindow(ShiftbookError):
    """Raised when a worker has no resolvable shift on the requested date."""

    pass


class ConflictingTransition(ShiftbookError):
    """Raised when a conditional status update finds the record already moved on."""

    pass


class ReservationNotFound(ShiftbookError):
    pass


class ReservationNotOffered(ShiftbookError):
    """Raised when a worker tries to accept a reservation outside their shift."""

    pass


class ReservationRuleViolation(ShiftbookError):
    """Raised when a new reservation breaks the lead time or duration rules."""

    pass


class WorkerNotFound(ShiftbookError):
    pass
