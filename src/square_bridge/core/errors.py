"""
Error taxonomy for the Square bridge.

Every component raises one of these instead of returning partial results.
The application's exception handlers are the only place where an error is
turned into an HTTP response.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Machine-readable classification of a failure."""

    MISSING_CONFIGURATION = "missing_configuration"
    INVALID_INPUT = "invalid_input"
    STORE_UNAVAILABLE = "store_unavailable"
    NOT_FOUND = "not_found"
    UPSTREAM = "upstream"
    UNEXPECTED = "unexpected"


class SquareBridgeError(Exception):
    """Base class for all errors raised by the bridge."""

    kind: ErrorKind = ErrorKind.UNEXPECTED
    status_code: int = 500

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Render the error as a JSON response body."""
        return {"error": self.message, "details": self.details}


class MissingConfigurationError(SquareBridgeError):
    """A required secret or setting is absent."""

    kind = ErrorKind.MISSING_CONFIGURATION
    status_code = 500

    @classmethod
    def for_values(cls, message: str, **values: str) -> "MissingConfigurationError":
        """
        Build the error from the values that were required.

        The details map each variable name to whether it is set, never to its value.
        """
        return cls(message, details={name.upper(): bool(value) for name, value in values.items()})


class InvalidInputError(SquareBridgeError):
    """A query parameter is malformed."""

    kind = ErrorKind.INVALID_INPUT
    status_code = 400


class StoreUnavailableError(SquareBridgeError):
    """The credential store could not be reached or written."""

    kind = ErrorKind.STORE_UNAVAILABLE
    status_code = 500


class TokenNotFoundError(SquareBridgeError):
    """The credential store holds no token."""

    kind = ErrorKind.NOT_FOUND
    status_code = 500


class UpstreamError(SquareBridgeError):
    """
    Square answered with a non-success status.

    Carries the upstream status and body verbatim so the caller can mirror them.
    """

    kind = ErrorKind.UPSTREAM

    def __init__(
        self,
        message: str,
        status_code: int,
        body: Any,
        location_id: str | None = None,
    ) -> None:
        super().__init__(message, details=body)
        self.status_code = status_code
        self.body = body
        self.location_id = location_id

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "error": self.message,
            "status": self.status_code,
            "body": self.body,
        }
        if self.location_id is not None:
            payload["location_id"] = self.location_id
        return payload
