"""Extraction of a single value from a JSON response.

Expressions take the form ``$.data.items[0].price``. Bracketed string keys
(``$['content-type']``) are accepted for keys that are not plain names.
Extraction failure never changes whether an invocation succeeded.
"""

import json
import re
from typing import Any, List, Optional, Union

from .errors import ExtractionError

_SEGMENT_RE = re.compile(
    r"\.(?P<name>[^.\[\]]+)"
    r"|\[(?P<index>\d+)\]"
    r"|\[(?P<quote>['\"])(?P<key>.*?)(?P=quote)\]"
)

Segment = Union[str, int]


def parse_expression(expression: str) -> List[Segment]:
    """Split an expression into dict keys (str) and list indexes (int)

    Raises:
        ExtractionError: The expression is not of the supported form
    """
    expr = (expression or "").strip()
    if expr.startswith("$"):
        expr = expr[1:]
    elif expr and not expr.startswith((".", "[")):
        expr = "." + expr

    segments: List[Segment] = []
    pos = 0
    while pos < len(expr):
        match = _SEGMENT_RE.match(expr, pos)
        if match is None:
            raise ExtractionError(f"Invalid response mapping '{expression}' at offset {pos}")
        if match.group("name") is not None:
            segments.append(match.group("name"))
        elif match.group("index") is not None:
            segments.append(int(match.group("index")))
        else:
            segments.append(match.group("key"))
        pos = match.end()
    return segments


def resolve(data: Any, segments: List[Segment]) -> Any:
    current = data
    for segment in segments:
        if isinstance(segment, int):
            if not isinstance(current, list) or segment >= len(current):
                raise ExtractionError(f"Index [{segment}] not found")
            current = current[segment]
        else:
            if not isinstance(current, dict) or segment not in current:
                raise ExtractionError(f"Key '{segment}' not found")
            current = current[segment]
    return current


def extract_strict(response_body: str, expression: str) -> Any:
    """Like ``extract`` but raises ExtractionError instead of returning None"""
    try:
        data = json.loads(response_body)
    except (TypeError, ValueError) as exc:
        raise ExtractionError(f"Response is not valid JSON: {exc}") from exc
    return resolve(data, parse_expression(expression))


def extract(response_body: Optional[str], expression: Optional[str]) -> Any:
    """Apply ``expression`` to the JSON in ``response_body``

    Returns:
        The selected value, or None when the body is not JSON or the path is missing
    """
    if not expression or response_body is None:
        return None
    try:
        return extract_strict(response_body, expression)
    except ExtractionError:
        return None


__all__ = [
    "parse_expression",
    "resolve",
    "extract_strict",
    "extract",
]
