"""Exceptions raised by the custom action engine."""

from typing import Dict, Optional


class ActionError(Exception):
    """Base class for custom action failures"""


class ValidationError(ActionError, ValueError):
    """The action definition is malformed; it must not reach the network

    Args:
        errors: Mapping of field path (e.g. ``parameters.0.name``) to message
    """

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        if message is None:
            message = "; ".join(f"{path}: {msg}" for path, msg in self.errors.items())
        super().__init__(message or "Invalid action definition")


class MissingArgumentError(ActionError):
    """A required parameter has no value at invocation time"""

    def __init__(self, parameter_name: str):
        self.parameter_name = parameter_name
        super().__init__(f"Missing required parameter: {parameter_name}")


class NetworkError(ActionError):
    """Transport-level failure (DNS, connection reset, TLS, ...)"""


class RequestTimeoutError(NetworkError):
    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Request timed out after {timeout_seconds} seconds")


class InvalidRequestError(ActionError):
    """The synthesized request was refused by the HTTP client before sending"""


class HttpError(ActionError):
    """A response was received but its status is not a success code"""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"API call failed with status {status_code}")


class ExtractionError(ActionError):
    """The response mapping could not be applied to the response body"""


__all__ = [
    "ActionError",
    "ValidationError",
    "MissingArgumentError",
    "NetworkError",
    "RequestTimeoutError",
    "InvalidRequestError",
    "HttpError",
    "ExtractionError",
]
