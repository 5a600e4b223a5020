"""Turns an action definition plus argument values into a concrete request.

The same synthesis runs for a builder preview/test and for a live chatbot
invocation. The only difference is how a required parameter with no value
is handled: a live invocation raises ``MissingArgumentError``, a test run
substitutes ``TEST_PLACEHOLDER`` and reports which parameters used it.
"""

import copy
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, quote, urlencode

from .coercion import coerce
from .errors import MissingArgumentError, ValidationError
from .models import (
    ActionDefinition,
    AuthType,
    ParamLocation,
    SynthesizedRequest,
)
from .templates import PLACEHOLDER_RE

TEST_PLACEHOLDER = "test_value"


def stringify(value: Any) -> str:
    """String form of a value as it appears in a URL or header"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def resolve_arguments(
    action: ActionDefinition,
    arguments: Mapping[str, Any],
    test_mode: bool = False,
) -> Tuple[Dict[str, Any], List[str]]:
    """Resolve and coerce every parameter's effective value.

    Returns:
        Tuple of (values by parameter name, names that fell back to the test placeholder)

    Raises:
        MissingArgumentError: A required parameter has no value outside test mode
    """
    values: Dict[str, Any] = {}
    placeholders: List[str] = []
    for param in action.parameters:
        raw = arguments.get(param.name)
        if _is_empty(raw):
            raw = param.default
        if _is_empty(raw):
            if test_mode:
                raw = TEST_PLACEHOLDER
                placeholders.append(param.name)
            elif param.required:
                raise MissingArgumentError(param.name)
            else:
                continue
        values[param.name] = coerce(param, raw)
    return values, placeholders


def _split_endpoint(endpoint: str) -> Tuple[str, List[Tuple[str, str]]]:
    path, sep, query = endpoint.partition("?")
    if not sep:
        return path, []
    return path, parse_qsl(query, keep_blank_values=True)


def build_path(endpoint: str, action: ActionDefinition, values: Mapping[str, Any]) -> str:
    """Substitute path parameters everywhere in ``endpoint``, query part included"""
    for param in action.parameters:
        if param.location is not ParamLocation.PATH or param.name not in values:
            continue
        encoded = quote(stringify(values[param.name]), safe="")
        endpoint = PLACEHOLDER_RE.sub(
            lambda m, p=param, e=encoded: e if m.group(1).strip() == p.name else m.group(0),
            endpoint,
        )
    return endpoint


def build_query(
    literal: List[Tuple[str, str]],
    action: ActionDefinition,
    values: Mapping[str, Any],
) -> str:
    overrides: Dict[str, str] = {k: stringify(v) for k, v in action.api_config.query_params.items()}
    for param in action.parameters:
        if param.location is ParamLocation.QUERY and param.name in values:
            overrides[param.effective_key] = stringify(values[param.name])

    # repeated literal keys are kept unless overridden, then the first one takes the value
    pairs: List[Tuple[str, str]] = []
    placed = set()
    for key, value in literal:
        if key in overrides:
            if key not in placed:
                pairs.append((key, overrides[key]))
                placed.add(key)
        else:
            pairs.append((key, value))
    pairs.extend((k, v) for k, v in overrides.items() if k not in placed)
    pairs = [(k, v) for k, v in pairs if k]
    if not pairs:
        return ""
    return "?" + urlencode(pairs, quote_via=quote)


def build_headers(action: ActionDefinition, values: Mapping[str, Any]) -> Dict[str, str]:
    config = action.api_config
    headers = {k: stringify(v) for k, v in config.headers.items()}
    for param in action.parameters:
        if param.location is ParamLocation.HEADER and param.name in values:
            headers[param.effective_key] = stringify(values[param.name])

    if config.auth_type is AuthType.BEARER:
        headers["Authorization"] = f"Bearer {config.auth_value or ''}"
    elif config.auth_type is AuthType.BASIC:
        # credentials are supplied pre-encoded
        headers["Authorization"] = f"Basic {config.auth_value or ''}"
    elif config.auth_type is AuthType.API_KEY:
        headers[config.auth_header] = config.auth_value or ""
    return headers


def _substitute_text(text: str, values: Mapping[str, Any], json_escape: bool) -> str:
    def replace(match):
        name = match.group(1).strip()
        if name not in values:
            return match.group(0)
        text_value = stringify(values[name])
        if json_escape:
            text_value = json.dumps(text_value)[1:-1]
        return text_value

    return PLACEHOLDER_RE.sub(replace, text)


def _substitute_tree(node: Any, values: Mapping[str, Any]) -> Any:
    if isinstance(node, dict):
        return {k: _substitute_tree(v, values) for k, v in node.items()}
    if isinstance(node, list):
        return [_substitute_tree(v, values) for v in node]
    if isinstance(node, str):
        whole = PLACEHOLDER_RE.fullmatch(node)
        if whole and whole.group(1).strip() in values:
            return values[whole.group(1).strip()]
        return _substitute_text(node, values, json_escape=False)
    return node


def set_body_path(body: Dict[str, Any], body_path: str, value: Any) -> None:
    """Write ``value`` at a dot-separated path, replacing non-object intermediates"""
    keys = [k for k in body_path.split(".") if k]
    if not keys:
        return
    current = body
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def build_body(action: ActionDefinition, values: Mapping[str, Any]) -> Optional[Any]:
    template = action.api_config.body_template
    body_params = [p for p in action.parameters if p.location is ParamLocation.BODY]

    if isinstance(template, str) and template.strip():
        text = _substitute_text(template, values, json_escape=True)
        try:
            body = json.loads(text)
        except ValueError as exc:
            raise ValidationError(
                {"apiConfig.bodyTemplate": f"Body template is not valid JSON: {exc}"}
            ) from exc
    elif isinstance(template, (dict, list)):
        body = _substitute_tree(copy.deepcopy(template), values)
    elif body_params:
        body = {}
    else:
        return None

    for param in body_params:
        if param.name not in values:
            continue
        if not isinstance(body, dict):
            raise ValidationError(
                {"apiConfig.bodyTemplate": "Body parameters require a JSON object body"}
            )
        set_body_path(body, param.body_path or param.name, values[param.name])
    return body


def join_url(base_url: str, path: str, query: str) -> str:
    if base_url.endswith("/") and path.startswith("/"):
        base_url = base_url.rstrip("/")
    return f"{base_url}{path}{query}"


def synthesize(
    action: ActionDefinition,
    arguments: Optional[Mapping[str, Any]] = None,
    test_mode: bool = False,
) -> SynthesizedRequest:
    """Build the concrete request for ``action`` called with ``arguments``

    Args:
        action: Action definition to synthesize
        arguments: Raw argument values by parameter name
        test_mode: Substitute a placeholder for missing required values instead of raising

    Returns:
        SynthesizedRequest with method, url, headers and JSON body

    Raises:
        MissingArgumentError: A required parameter has no value outside test mode
        ValidationError: The body template cannot be turned into JSON
    """
    values, placeholders = resolve_arguments(action, arguments or {}, test_mode=test_mode)
    if placeholders:
        logging.info(
            f"[ActionSynthesizer] '{action.name}' using placeholder value for: {placeholders}"
        )

    path, literal_query = _split_endpoint(build_path(action.api_config.endpoint, action, values))
    url = join_url(
        action.api_config.base_url,
        path,
        build_query(literal_query, action, values),
    )
    headers = build_headers(action, values)
    body = build_body(action, values)
    if body is not None and not any(k.lower() == "content-type" for k in headers):
        headers["Content-Type"] = "application/json"

    return SynthesizedRequest(
        method=action.api_config.method,
        url=url,
        headers=headers,
        body=body,
        used_placeholders=placeholders,
    )


__all__ = [
    "TEST_PLACEHOLDER",
    "stringify",
    "resolve_arguments",
    "build_path",
    "build_query",
    "build_headers",
    "build_body",
    "set_body_path",
    "join_url",
    "synthesize",
]
