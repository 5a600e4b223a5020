"""Data models for custom actions.

This module contains the declarative structures a chatbot owner authors in
the action builder (parameters, API configuration, the action itself) and
the ephemeral structures the engine produces while running one (the
synthesized request, the execution policy and the invocation result).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class HTTPMethod(Enum):
    """Supported HTTP methods for custom actions"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class ParamType(Enum):
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


class ParamLocation(Enum):
    """Where a parameter value is placed in the outbound request"""
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    BODY = "body"


class AuthType(Enum):
    NONE = "none"
    BEARER = "bearer"
    API_KEY = "api_key"
    BASIC = "basic"


class TestStatus(Enum):
    UNTESTED = "untested"
    PASSED = "passed"
    FAILED = "failed"


DEFAULT_API_KEY_HEADER = "X-API-Key"


@dataclass
class Parameter:
    """Configuration for a custom action parameter

    Args:
        name: Parameter name (snake_case)
        type: Declared value type
        description: Parameter description shown to the calling model
        required: Whether the parameter must be supplied (default: True)
        default: Fallback value used when no argument is supplied
        location: Where the resolved value goes in the request
        key: Query key or header name (defaults to ``name``)
        body_path: Dot-separated path into the JSON body (body location only)
        enum, pattern, minimum, maximum: Optional validators
    """
    name: str
    type: ParamType = ParamType.STRING
    description: str = ""
    required: bool = True
    default: Optional[Any] = None
    location: ParamLocation = ParamLocation.QUERY
    key: Optional[str] = None
    body_path: Optional[str] = None
    enum: Optional[List[str]] = None
    pattern: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    @property
    def effective_key(self) -> str:
        return self.key or self.name

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Parameter":
        return cls(
            name=data.get("name", ""),
            type=ParamType(data.get("type", "string")),
            description=data.get("description", ""),
            required=data.get("required", True),
            default=data.get("default"),
            location=ParamLocation(data.get("location", "query")),
            key=data.get("key"),
            body_path=data.get("bodyPath"),
            enum=data.get("enum"),
            pattern=data.get("pattern"),
            minimum=data.get("minimum"),
            maximum=data.get("maximum"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "name": self.name,
            "type": self.type.value,
            "description": self.description,
            "required": self.required,
            "location": self.location.value,
        }
        optional = {
            "default": self.default,
            "key": self.key,
            "bodyPath": self.body_path,
            "enum": self.enum,
            "pattern": self.pattern,
            "minimum": self.minimum,
            "maximum": self.maximum,
        }
        result.update({k: v for k, v in optional.items() if v is not None})
        return result


@dataclass
class ApiConfig:
    """HTTP template for a custom action

    Args:
        method: HTTP method to use
        base_url: Scheme and host, e.g. ``https://api.example.com``
        endpoint: Path, may contain ``{{name}}`` placeholders and a literal query string
        headers: Static headers merged with parameter-derived ones
        query_params: Static query parameters merged with parameter-derived ones
        body_template: Base JSON body (dict or JSON text), may contain placeholders
        auth_type: Authentication mode
        auth_value: Token or pre-encoded credentials for ``auth_type``
        auth_header: Header name used for ``api_key`` auth
        response_mapping: JSONPath-like expression applied to the response
        success_codes: Status codes counted as success
        timeout_seconds: Per-attempt request timeout
        retry_count: Additional attempts after a transient failure
        retry_on_codes: Extra status codes treated as transient
        follow_redirects: Whether redirects are followed
        verify_ssl: Whether TLS certificates are verified
    """
    method: HTTPMethod = HTTPMethod.GET
    base_url: str = ""
    endpoint: str = "/"
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)
    body_template: Optional[Any] = None
    auth_type: AuthType = AuthType.NONE
    auth_value: Optional[str] = None
    auth_header: str = DEFAULT_API_KEY_HEADER
    response_mapping: Optional[str] = None
    success_codes: List[int] = field(default_factory=lambda: [200])
    timeout_seconds: float = 30.0
    retry_count: int = 0
    retry_on_codes: List[int] = field(default_factory=list)
    follow_redirects: bool = True
    verify_ssl: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApiConfig":
        body = data.get("bodyTemplate")
        if body is None:
            body = data.get("staticBody")
        return cls(
            method=HTTPMethod(data.get("method", "GET").upper()),
            base_url=data.get("baseUrl", ""),
            endpoint=data.get("endpoint", "/"),
            headers=dict(data.get("headers") or data.get("staticHeaders") or {}),
            query_params=dict(data.get("queryParams") or {}),
            body_template=body,
            auth_type=AuthType(data.get("authType") or "none"),
            auth_value=data.get("authValue"),
            auth_header=data.get("authHeader") or DEFAULT_API_KEY_HEADER,
            response_mapping=data.get("responseMapping"),
            success_codes=list(data.get("successCodes") or [200]),
            timeout_seconds=float(data.get("timeoutSeconds") or 30.0),
            retry_count=int(data.get("retryCount") or 0),
            retry_on_codes=list(data.get("retryOnCodes") or []),
            follow_redirects=data.get("followRedirects") is not False,
            verify_ssl=data.get("verifySsl") is not False,
        )

    def to_dict(self, include_secrets: bool = False) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "baseUrl": self.base_url,
            "endpoint": self.endpoint,
            "headers": dict(self.headers),
            "queryParams": dict(self.query_params),
            "bodyTemplate": self.body_template,
            "authType": self.auth_type.value,
            "authValue": self.auth_value if include_secrets else ("***" if self.auth_value else None),
            "authHeader": self.auth_header,
            "responseMapping": self.response_mapping,
            "successCodes": list(self.success_codes),
            "timeoutSeconds": self.timeout_seconds,
            "retryCount": self.retry_count,
            "retryOnCodes": list(self.retry_on_codes),
            "followRedirects": self.follow_redirects,
            "verifySsl": self.verify_ssl,
        }


_JSON_SCHEMA_TYPES = {
    ParamType.STRING: "string",
    ParamType.NUMBER: "number",
    ParamType.INTEGER: "integer",
    ParamType.BOOLEAN: "boolean",
    ParamType.ARRAY: "array",
    ParamType.OBJECT: "object",
}


@dataclass
class ActionDefinition:
    """A user-authored description of one external API call

    Args:
        name: Unique action name within a chatbot (becomes tool name)
        description: Used by the calling model to decide when to invoke the action
        api_config: HTTP template
        parameters: Ordered list of typed inputs
        display_name: Human readable label
        trigger_examples: Sample utterances, may contain ``{{name}}`` placeholders
        version: Incremented on every save
        last_tested_at: When the last completed test finished
        test_status: Summary of the last completed test
        is_enabled: Disabled actions are not offered to the chatbot
    """
    name: str
    description: str
    api_config: ApiConfig
    parameters: List[Parameter] = field(default_factory=list)
    display_name: str = ""
    trigger_examples: List[str] = field(default_factory=list)
    version: int = 1
    last_tested_at: Optional[datetime] = None
    test_status: TestStatus = TestStatus.UNTESTED
    is_enabled: bool = True

    def record_test(self, result: "InvocationResult") -> None:
        """Store the summary of a completed test; the result body is not kept"""
        self.test_status = TestStatus.PASSED if result.success else TestStatus.FAILED
        self.last_tested_at = datetime.now(timezone.utc)

    def tool_schema(self) -> Dict[str, Any]:
        """JSON schema of the action's arguments, as offered to the calling model"""
        properties = {}
        required = []
        for param in self.parameters:
            prop: Dict[str, Any] = {
                "type": _JSON_SCHEMA_TYPES[param.type],
                "description": param.description,
            }
            if param.default is not None:
                prop["default"] = param.default
            if param.enum:
                prop["enum"] = list(param.enum)
            if param.pattern:
                prop["pattern"] = param.pattern
            if param.minimum is not None:
                prop["minimum"] = param.minimum
            if param.maximum is not None:
                prop["maximum"] = param.maximum
            properties[param.name] = prop
            if param.required:
                required.append(param.name)
        return {"type": "object", "properties": properties, "required": required}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionDefinition":
        last_tested_at = data.get("lastTestedAt")
        if isinstance(last_tested_at, str):
            last_tested_at = datetime.fromisoformat(last_tested_at)
        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            api_config=ApiConfig.from_dict(data.get("apiConfig") or {}),
            parameters=[Parameter.from_dict(p) for p in data.get("parameters") or []],
            display_name=data.get("displayName") or data.get("name", ""),
            trigger_examples=list(data.get("triggerExamples") or []),
            version=int(data.get("version") or 1),
            last_tested_at=last_tested_at,
            test_status=TestStatus(data.get("testStatus") or "untested"),
            is_enabled=data.get("isEnabled") is not False,
        )

    def to_dict(self, include_secrets: bool = False) -> Dict[str, Any]:
        return {
            "name": self.name,
            "displayName": self.display_name,
            "description": self.description,
            "triggerExamples": list(self.trigger_examples),
            "parameters": [p.to_dict() for p in self.parameters],
            "apiConfig": self.api_config.to_dict(include_secrets=include_secrets),
            "toolSchema": self.tool_schema(),
            "version": self.version,
            "lastTestedAt": self.last_tested_at.isoformat() if self.last_tested_at else None,
            "testStatus": self.test_status.value,
            "isEnabled": self.is_enabled,
        }


@dataclass
class SynthesizedRequest:
    """A concrete request produced from an action and its arguments"""
    method: HTTPMethod
    url: str
    headers: Dict[str, str]
    body: Optional[Any] = None
    used_placeholders: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "url": self.url,
            "headers": dict(self.headers),
            "body": self.body,
            "usedPlaceholders": list(self.used_placeholders),
        }


@dataclass
class ExecutionPolicy:
    """Transport behavior for one execution

    ``backoff_seconds`` of 0 retries immediately; otherwise attempt ``n``
    waits ``backoff_seconds * 2 ** (n - 1)`` before being issued.
    """
    timeout_seconds: float = 30.0
    retry_count: int = 0
    follow_redirects: bool = True
    verify_ssl: bool = True
    success_codes: List[int] = field(default_factory=lambda: [200])
    retry_on_codes: List[int] = field(default_factory=list)
    backoff_seconds: float = 0.0

    @classmethod
    def from_api_config(cls, config: ApiConfig) -> "ExecutionPolicy":
        return cls(
            timeout_seconds=config.timeout_seconds,
            retry_count=max(0, config.retry_count),
            follow_redirects=config.follow_redirects,
            verify_ssl=config.verify_ssl,
            success_codes=list(config.success_codes or [200]),
            retry_on_codes=list(config.retry_on_codes),
        )


@dataclass
class InvocationResult:
    """Outcome of one run of an action; never persisted in full"""
    success: bool
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    response_time: Optional[int] = None
    error: Optional[str] = None
    request_url: Optional[str] = None
    extracted_data: Optional[Any] = None
    attempts: int = 0
    used_placeholders: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "statusCode": self.status_code,
            "responseBody": self.response_body,
            "responseTime": self.response_time,
            "error": self.error,
            "requestUrl": self.request_url,
            "extractedData": self.extracted_data,
            "attempts": self.attempts,
            "usedPlaceholders": list(self.used_placeholders),
        }


__all__ = [
    "HTTPMethod",
    "ParamType",
    "ParamLocation",
    "AuthType",
    "TestStatus",
    "DEFAULT_API_KEY_HEADER",
    "Parameter",
    "ApiConfig",
    "ActionDefinition",
    "SynthesizedRequest",
    "ExecutionPolicy",
    "InvocationResult",
]
