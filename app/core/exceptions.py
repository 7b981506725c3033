# app/core/exceptions.py
"""Errors raised by the booking core.

Services raise these; ``app.main`` turns them into HTTP responses.
"""


class BookingError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(BookingError):
    status_code = 404


class Forbidden(BookingError):
    status_code = 403


class InvalidTransition(BookingError):
    status_code = 400

    def __init__(self, current: str, requested: str, reason: str):
        super().__init__(reason)
        self.current = current
        self.requested = requested
        self.reason = reason


class ConcurrentUpdate(InvalidTransition):
    """The booking changed underneath us between read and save."""

    status_code = 409


class ValidationError(BookingError):
    status_code = 422
