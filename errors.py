"""Error kinds raised by the reservation engine and its collaborators.

Each kind carries a stable ``code`` and an HTTP ``status_code`` so the API
and the CLI can report it without inspecting the message.
"""


class ReservationError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ReservationError, LookupError):
    """Unknown user, book or reservation id."""

    status_code = 404
    code = "not_found"


class InvalidRequestError(ReservationError, ValueError):
    """Non-positive rental days, malformed or out-of-range dates."""

    status_code = 400
    code = "invalid_request"


class BookUnavailableError(ReservationError):
    """No stock left to reserve."""

    status_code = 409
    code = "book_unavailable"


class ConflictError(ReservationError):
    """Invalid state transition or duplicate record."""

    status_code = 409
    code = "conflict"
