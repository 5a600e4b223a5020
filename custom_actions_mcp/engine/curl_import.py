"""Import of a pasted cURL command into an ApiConfig.

Headers are classified so browser noise copied from devtools
(``User-Agent``, ``sec-*``, cookies) is left out unless asked for.
Authorization material is lifted into the auth fields.
"""

import base64
import json
import logging
import shlex
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlsplit

from .errors import ValidationError
from .models import DEFAULT_API_KEY_HEADER, ApiConfig, AuthType, HTTPMethod
from .templates import PLACEHOLDER_RE

ESSENTIAL_HEADERS = {"content-type", "accept"}
BROWSER_HEADERS = {
    "user-agent",
    "accept-language",
    "accept-encoding",
    "cache-control",
    "connection",
    "cookie",
    "dnt",
    "origin",
    "pragma",
    "priority",
    "referer",
    "upgrade-insecure-requests",
}

_DATA_FLAGS = {"-d", "--data", "--data-raw", "--data-binary", "--data-ascii", "--json"}
_IGNORED_FLAGS = {"-s", "--silent", "-S", "--show-error", "-v", "--verbose", "-i", "--include", "--compressed", "-g", "--globoff"}


@dataclass
class ClassifiedHeader:
    key: str
    value: str
    category: str  # essential | optional | browser

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "value": self.value, "category": self.category}


@dataclass
class CurlImport:
    config: ApiConfig
    classified_headers: List[ClassifiedHeader] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "config": self.config.to_dict(include_secrets=True),
            "classifiedHeaders": [h.to_dict() for h in self.classified_headers],
        }


def classify_header(key: str) -> str:
    lowered = key.lower()
    if lowered in ESSENTIAL_HEADERS:
        return "essential"
    if lowered in BROWSER_HEADERS or lowered.startswith("sec-"):
        return "browser"
    return "optional"


def _apply_authorization(config: ApiConfig, value: str) -> bool:
    scheme, _, credential = value.strip().partition(" ")
    if scheme.lower() == "bearer" and credential:
        config.auth_type, config.auth_value = AuthType.BEARER, credential.strip()
        return True
    if scheme.lower() == "basic" and credential:
        config.auth_type, config.auth_value = AuthType.BASIC, credential.strip()
        return True
    return False


def parse_curl(command: str, include_browser_headers: bool = False) -> CurlImport:
    """Parse a cURL command line

    Args:
        command: The command as copied from a terminal or browser devtools
        include_browser_headers: Keep headers classified as browser noise

    Returns:
        CurlImport with the derived ApiConfig and every header's classification

    Raises:
        ValidationError: The command cannot be tokenized, has no URL or has a non-JSON body
    """
    text = command.replace("\\\r\n", " ").replace("\\\n", " ").strip()
    try:
        tokens = shlex.split(text)
    except ValueError as exc:
        raise ValidationError({"curl": f"Could not parse command: {exc}"}) from exc
    if tokens and tokens[0] == "curl":
        tokens = tokens[1:]

    method: Optional[str] = None
    url: Optional[str] = None
    raw_headers: List[str] = []
    data: List[str] = []
    user: Optional[str] = None
    follow_redirects = False
    verify_ssl = True

    it = iter(tokens)
    for token in it:
        if token in ("-X", "--request"):
            method = next(it, "GET").upper()
        elif token in ("-H", "--header"):
            raw_headers.append(next(it, ""))
        elif token in _DATA_FLAGS:
            data.append(next(it, ""))
            if token == "--json":
                raw_headers.append("Content-Type: application/json")
        elif token in ("-u", "--user"):
            user = next(it, "")
        elif token == "--url":
            url = next(it, None)
        elif token in ("-L", "--location"):
            follow_redirects = True
        elif token in ("-k", "--insecure"):
            verify_ssl = False
        elif token in _IGNORED_FLAGS:
            continue
        elif token.startswith("-"):
            logging.info(f"[CurlImport] Ignoring unsupported option {token}")
        elif url is None:
            url = token

    if not url:
        raise ValidationError({"curl": "No URL found in cURL command."})

    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValidationError({"curl": f"URL '{url}' must include scheme and host."})

    endpoint = parts.path or "/"
    if parts.query:
        endpoint = f"{endpoint}?{parts.query}"

    method = method or ("POST" if data else "GET")
    if method not in HTTPMethod.__members__:
        raise ValidationError({"curl": f"Unsupported HTTP method '{method}'."})

    config = ApiConfig(
        method=HTTPMethod[method],
        base_url=f"{parts.scheme}://{parts.netloc}",
        endpoint=endpoint,
        follow_redirects=follow_redirects,
        verify_ssl=verify_ssl,
    )

    classified: List[ClassifiedHeader] = []
    for raw in raw_headers:
        key, sep, value = raw.partition(":")
        key, value = key.strip(), value.strip()
        if not sep or not key:
            continue
        lowered = key.lower()
        if lowered == "authorization" and _apply_authorization(config, value):
            continue
        if lowered == DEFAULT_API_KEY_HEADER.lower():
            config.auth_type, config.auth_value, config.auth_header = AuthType.API_KEY, value, key
            continue
        classified.append(ClassifiedHeader(key=key, value=value, category=classify_header(key)))

    if user is not None and config.auth_type is AuthType.NONE:
        config.auth_type = AuthType.BASIC
        config.auth_value = base64.b64encode(user.encode()).decode()

    config.headers = {
        h.key: h.value
        for h in classified
        if include_browser_headers or h.category != "browser"
    }

    if data:
        payload = "&".join(data)
        try:
            config.body_template = json.loads(payload)
        except ValueError:
            # unquoted placeholders such as {"qty": {{qty}}} are JSON once substituted
            try:
                json.loads(PLACEHOLDER_RE.sub("0", payload))
            except ValueError:
                raise ValidationError(
                    {"curl": "Request body must be JSON; form-encoded data is not supported."}
                ) from None
            config.body_template = payload

    return CurlImport(config=config, classified_headers=classified)


__all__ = [
    "ClassifiedHeader",
    "CurlImport",
    "classify_header",
    "parse_curl",
]
