"""Lenient conversion of raw argument values to a parameter's declared type.

Coercion never raises: a value that cannot be converted is passed through
unchanged so it still shows up in the request preview.
"""

import json
import math
from typing import Any

from .models import Parameter, ParamType


def _to_number(raw: str) -> Any:
    if "_" in raw:
        return raw
    try:
        value = float(raw)
    except ValueError:
        return raw
    # nan and inf are not representable in a JSON body
    return value if math.isfinite(value) else raw


def _to_integer(raw: str) -> Any:
    if "_" in raw:
        return raw
    try:
        return int(raw.strip(), 10)
    except ValueError:
        return raw


def _to_boolean(raw: str) -> Any:
    if raw == "true":
        return True
    if raw == "false":
        return False
    return raw


def _json_of(expected: type):
    def parse(raw: str) -> Any:
        try:
            value = json.loads(raw)
        except ValueError:
            return raw
        return value if isinstance(value, expected) else raw
    return parse


_COERCERS = {
    ParamType.NUMBER: _to_number,
    ParamType.INTEGER: _to_integer,
    ParamType.BOOLEAN: _to_boolean,
    ParamType.ARRAY: _json_of(list),
    ParamType.OBJECT: _json_of(dict),
}


def coerce(parameter: Parameter, raw: Any) -> Any:
    """Convert ``raw`` to ``parameter.type``; non-string input is returned as is"""
    if not isinstance(raw, str):
        return raw
    coercer = _COERCERS.get(parameter.type)
    if coercer is None:
        return raw
    return coercer(raw)


__all__ = ["coerce"]
