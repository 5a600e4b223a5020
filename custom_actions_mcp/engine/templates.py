"""Detection of ``{{name}}`` placeholders and parameter synchronization.

The builder keeps every placeholder referenced by the trigger examples, the
endpoint or the body template backed by a declared parameter. Nothing here
enforces that; it only makes the gap visible and cheap to close.
"""

import json
import re
from typing import Iterable, List, Set

from .models import ActionDefinition, Parameter, ParamLocation, ParamType

PLACEHOLDER_RE = re.compile(r"\{\{([^}]+)\}\}")


def extract_variables(text: str) -> Set[str]:
    """Return the distinct names inside ``{{...}}`` tokens, whitespace trimmed"""
    if not text:
        return set()
    names = (match.strip() for match in PLACEHOLDER_RE.findall(text))
    return {name for name in names if name}


def _body_text(body_template) -> str:
    if body_template is None:
        return ""
    if isinstance(body_template, str):
        return body_template
    return json.dumps(body_template)


def detect_variables(action: ActionDefinition) -> Set[str]:
    """Union of placeholders across trigger examples, endpoint and body template"""
    detected: Set[str] = set()
    for example in action.trigger_examples:
        detected |= extract_variables(example)
    detected |= extract_variables(action.api_config.endpoint)
    detected |= extract_variables(_body_text(action.api_config.body_template))
    return detected


def missing_parameters(action: ActionDefinition) -> List[str]:
    """Detected names with no declared parameter, sorted for stable display"""
    declared = {param.name for param in action.parameters}
    return sorted(detect_variables(action) - declared)


def parameter_stub(name: str) -> Parameter:
    return Parameter(
        name=name,
        type=ParamType.STRING,
        description=f"The {name.replace('_', ' ')} extracted from the user's message",
        required=True,
        location=ParamLocation.QUERY,
    )


def parameter_stubs(names: Iterable[str]) -> List[Parameter]:
    return [parameter_stub(name) for name in names]


def sync_parameters(action: ActionDefinition) -> List[Parameter]:
    """Existing parameters plus stubs for every missing placeholder.

    Parameters whose name no longer appears in any text are kept.
    """
    return list(action.parameters) + parameter_stubs(missing_parameters(action))


__all__ = [
    "PLACEHOLDER_RE",
    "extract_variables",
    "detect_variables",
    "missing_parameters",
    "parameter_stub",
    "parameter_stubs",
    "sync_parameters",
]
