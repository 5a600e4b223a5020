"""Custom action engine package.

This package turns declarative, user-authored action definitions into HTTP
requests, executes them with timeout and retry, extracts the value the
chatbot needs from the response and serves saved actions as MCP tools.
"""

from .coercion import coerce
from .core import ActionMCPServer
from .curl_import import parse_curl
from .errors import (
    ActionError,
    ExtractionError,
    HttpError,
    InvalidRequestError,
    MissingArgumentError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
)
from .executor import ActionExecutor
from .extractor import extract
from .models import (
    ActionDefinition,
    ApiConfig,
    AuthType,
    ExecutionPolicy,
    HTTPMethod,
    InvocationResult,
    Parameter,
    ParamLocation,
    ParamType,
    SynthesizedRequest,
)
from .registry import ActionRegistry
from .runner import ActionRunner, ActionTestSession
from .synthesizer import synthesize
from .templates import detect_variables, extract_variables, missing_parameters, parameter_stubs

__all__ = [
    "ActionMCPServer",
    "ActionRegistry",
    "ActionRunner",
    "ActionTestSession",
    "ActionExecutor",
    "ActionDefinition",
    "ApiConfig",
    "AuthType",
    "ExecutionPolicy",
    "HTTPMethod",
    "InvocationResult",
    "Parameter",
    "ParamLocation",
    "ParamType",
    "SynthesizedRequest",
    "ActionError",
    "ExtractionError",
    "HttpError",
    "InvalidRequestError",
    "MissingArgumentError",
    "NetworkError",
    "RequestTimeoutError",
    "ValidationError",
    "coerce",
    "detect_variables",
    "extract",
    "extract_variables",
    "missing_parameters",
    "parameter_stubs",
    "parse_curl",
    "synthesize",
]
