"""Courier error taxonomy."""

from __future__ import annotations


class CourierError(Exception):
    """Base class for all Courier errors."""


class ConfigError(CourierError):
    """Raised when the process cannot be bootstrapped from its configuration."""


class SigningRequestError(CourierError):
    """A single signing request could not be turned into a batch fragment."""


class UnsupportedMethod(SigningRequestError):
    def __init__(self, method: object) -> None:
        super().__init__(f"Unsupported signing method: {method!r}")
        self.method = method


class MalformedTypedData(SigningRequestError):
    """Typed-data JSON is not a structured-data object with a domain."""


class MalformedSigningRequest(SigningRequestError):
    """Signing request params do not have the shape its method requires."""


class AgentCallFailed(CourierError):
    """The agent HTTP API returned an error or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SendFailed(CourierError):
    """An outbound message could not be delivered to the messaging network."""


class StreamFailed(CourierError):
    """The message subscription failed and could not be re-established."""
