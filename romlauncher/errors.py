"""Application error types."""

from typing import Optional


class AppError(Exception):
    """
    Error raised by request handlers and turned into a JSON response.

    ``operational`` errors are expected (bad input, missing route) and are not
    logged as crashes. ``event_type`` overrides the tag recorded in the
    security event log for this failure.
    """

    def __init__(self, message: str, status_code: int = 500,
                 operational: bool = True, event_type: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.operational = operational
        self.event_type = event_type


class RomListingError(Exception):
    """The ROM directory exists but could not be read."""
