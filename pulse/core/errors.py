"""
Domain errors raised by the services.

Each carries the HTTP status and machine-readable code the API layer
renders; services never import FastAPI.
"""

from __future__ import annotations


class PulseError(Exception):
    code = "pulse_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(PulseError):
    code = "not_found"
    status_code = 404


class PreconditionError(PulseError):
    """The entity exists but is in the wrong state for the requested operation."""

    code = "precondition_failed"
    status_code = 409


class ContentValidationError(PulseError):
    """The completion service returned output that does not match the expected shape."""

    code = "invalid_completion"
    status_code = 502


class InvalidRequestError(PulseError):
    code = "invalid_request"
    status_code = 400


class UpstreamTimeoutError(PulseError):
    code = "completion_timeout"
    status_code = 504
