"""Structural validation of action definitions.

Errors are keyed by field path (``name``, ``apiConfig.baseUrl``,
``parameters.2.bodyPath``) so the builder can highlight the offending
field, and each path maps to the wizard step that edits it.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlparse

from .errors import ValidationError
from .models import ActionDefinition, AuthType, Parameter, ParamLocation

NAME_RE = re.compile(r"^[a-z0-9_]+$")

MIN_ACTION_NAME_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 20
MIN_PARAMETER_DESCRIPTION_LENGTH = 5

STEP_BASIC_INFO = 1
STEP_API_CONFIG = 2
STEP_PARAMETERS = 3
STEP_TEST = 4


@dataclass
class ValidationResult:
    ok: bool
    errors: Dict[str, str]
    step: Optional[int] = None

    @classmethod
    def from_error(cls, exc: ValidationError) -> "ValidationResult":
        return cls(ok=False, errors=dict(exc.errors), step=pick_step(exc.errors))


def _is_http_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _validate_parameter(param: Parameter, prefix: str, errors: Dict[str, str]) -> None:
    name = (param.name or "").strip()
    if not name:
        errors[f"{prefix}.name"] = "Parameter name is required."
    elif not NAME_RE.match(name):
        errors[f"{prefix}.name"] = "Parameter name must be lowercase letters, numbers, underscores."

    if len((param.description or "").strip()) < MIN_PARAMETER_DESCRIPTION_LENGTH:
        errors[f"{prefix}.description"] = (
            f"Parameter description must be at least {MIN_PARAMETER_DESCRIPTION_LENGTH} characters."
        )

    if param.location in (ParamLocation.QUERY, ParamLocation.HEADER):
        if not (param.key or param.name or "").strip():
            errors[f"{prefix}.key"] = f"Key is required for {param.location.value} parameter."
    elif param.location is ParamLocation.BODY:
        if not (param.body_path or "").strip():
            errors[f"{prefix}.bodyPath"] = "Body path is required for body parameter."

    if param.pattern:
        try:
            re.compile(param.pattern)
        except re.error as exc:
            errors[f"{prefix}.pattern"] = f"Invalid pattern: {exc}"
    if param.minimum is not None and param.maximum is not None and param.minimum > param.maximum:
        errors[f"{prefix}.minimum"] = "Minimum must not exceed maximum."


def validate_action(action: ActionDefinition) -> Dict[str, str]:
    """Return field path -> message for every problem in ``action``"""
    errors: Dict[str, str] = {}

    name = (action.name or "").strip()
    if len(name) < MIN_ACTION_NAME_LENGTH:
        errors["name"] = f"Action name must be at least {MIN_ACTION_NAME_LENGTH} characters."
    elif not NAME_RE.match(name):
        errors["name"] = "Action name must be lowercase letters, numbers, underscores."

    if len((action.description or "").strip()) < MIN_DESCRIPTION_LENGTH:
        errors["description"] = f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters."

    config = action.api_config
    base_url = (config.base_url or "").strip()
    if not base_url:
        errors["apiConfig.baseUrl"] = "Base URL is required."
    elif not _is_http_url(base_url):
        errors["apiConfig.baseUrl"] = "Base URL must be a valid URL."

    endpoint = (config.endpoint or "").strip()
    if not endpoint:
        errors["apiConfig.endpoint"] = "Endpoint is required."
    elif not endpoint.startswith("/"):
        errors["apiConfig.endpoint"] = "Endpoint must start with '/'."

    if config.auth_type is not AuthType.NONE and not (config.auth_value or "").strip():
        errors["apiConfig.authValue"] = "Auth value is required for the selected auth type."

    if config.timeout_seconds <= 0:
        errors["apiConfig.timeoutSeconds"] = "Timeout must be positive."
    if config.retry_count < 0:
        errors["apiConfig.retryCount"] = "Retry count must not be negative."

    seen: Dict[str, int] = {}
    for idx, param in enumerate(action.parameters):
        _validate_parameter(param, f"parameters.{idx}", errors)
        param_name = (param.name or "").strip()
        if not param_name:
            continue
        if param_name in seen:
            errors[f"parameters.{idx}.name"] = "Duplicate parameter name."
            errors[f"parameters.{seen[param_name]}.name"] = "Duplicate parameter name."
        else:
            seen[param_name] = idx

    return errors


def pick_step(errors: Dict[str, str]) -> int:
    keys = list(errors)
    if any(k in ("name", "description") or k.startswith("triggerExamples") for k in keys):
        return STEP_BASIC_INFO
    if any(k.startswith("apiConfig.") for k in keys):
        return STEP_API_CONFIG
    if any(k.startswith("parameters.") for k in keys):
        return STEP_PARAMETERS
    return STEP_TEST


def check_action(action: ActionDefinition) -> ValidationResult:
    errors = validate_action(action)
    if not errors:
        return ValidationResult(ok=True, errors={})
    return ValidationResult(ok=False, errors=errors, step=pick_step(errors))


def ensure_valid(action: ActionDefinition) -> None:
    """Raise ValidationError when ``action`` cannot be saved or tested"""
    errors = validate_action(action)
    if errors:
        raise ValidationError(errors)


__all__ = [
    "ValidationResult",
    "validate_action",
    "pick_step",
    "check_action",
    "ensure_valid",
]
