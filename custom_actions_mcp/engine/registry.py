"""Registry of saved custom actions exposed as tools.

This module provides the ActionRegistry class which holds the saved action
definitions of a chatbot, turns each into a Google ADK FunctionTool and
runs the live pipeline when the chatbot's model calls one.
"""

import inspect
import logging
from typing import Any, Dict, List, Optional

from google.adk.tools.function_tool import FunctionTool

from .coercion import coerce
from .models import ActionDefinition, Parameter, ParamType
from .runner import ActionRunner
from .validation import ensure_valid

_PYTHON_TYPES = {
    ParamType.STRING: str,
    ParamType.NUMBER: float,
    ParamType.INTEGER: int,
    ParamType.BOOLEAN: bool,
}


def _optional_annotation(annotation, default):
    """Annotation a tool declaration will accept alongside ``default``"""
    if annotation is Any:
        return Any
    if default is None:
        return Optional[annotation]
    if not isinstance(default, annotation):
        return Any
    return annotation


def _signature_for(params: List[Parameter]) -> inspect.Signature:
    required = []
    optional = []
    for param in params:
        annotation = _PYTHON_TYPES.get(param.type, Any)
        if param.required:
            required.append(
                inspect.Parameter(
                    param.name,
                    inspect.Parameter.POSITIONAL_OR_KEYWORD,
                    annotation=annotation,
                )
            )
        else:
            default = coerce(param, param.default)
            optional.append(
                inspect.Parameter(
                    param.name,
                    inspect.Parameter.POSITIONAL_OR_KEYWORD,
                    default=default,
                    annotation=_optional_annotation(annotation, default),
                )
            )
    # positional parameters with defaults must follow those without
    return inspect.Signature(required + optional, return_annotation=dict)


class ActionRegistry:
    """Manages saved custom actions and their conversion to tools

    Args:
        runner: ActionRunner used for live invocations
    """

    def __init__(self, runner: Optional[ActionRunner] = None):
        self.runner = runner or ActionRunner()
        self.actions: Dict[str, ActionDefinition] = {}
        self.tools: Dict[str, FunctionTool] = {}
        logging.info("[ActionRegistry] Initialized action registry")

    def add_action(self, action: ActionDefinition) -> None:
        """Register a new action and create a corresponding tool

        Raises:
            ValidationError: If the action definition is malformed
            ValueError: If an action with the same name already exists
        """
        ensure_valid(action)
        if action.name in self.actions:
            raise ValueError(f"Action '{action.name}' already exists")
        self._register(action)
        logging.info(
            f"[ActionRegistry] Added action '{action.name}' as tool "
            f"({action.api_config.method.value} {action.api_config.base_url}{action.api_config.endpoint})"
        )

    def update_action(self, action: ActionDefinition) -> ActionDefinition:
        """Replace a saved action, bumping its version

        Raises:
            ValidationError: If the action definition is malformed
            KeyError: If no action with that name exists
        """
        ensure_valid(action)
        previous = self.actions.get(action.name)
        if previous is None:
            raise KeyError(f"Action '{action.name}' not found")
        action.version = previous.version + 1
        self._register(action)
        logging.info(f"[ActionRegistry] Updated action '{action.name}' to version {action.version}")
        return action

    def _register(self, action: ActionDefinition) -> None:
        self.actions[action.name] = action
        self.tools[action.name] = FunctionTool(self._create_action_function(action))

    def _create_action_function(self, action: ActionDefinition):
        action_name = action.name
        sig = _signature_for(action.parameters)

        async def action_function(*args, **kwargs):
            bound = sig.bind_partial(*args, **kwargs)
            return await self.call_action(action_name, dict(bound.arguments))

        action_function.__name__ = action_name
        action_function.__doc__ = action.description
        action_function.__signature__ = sig
        action_function.__annotations__ = {
            **{p.name: p.annotation for p in sig.parameters.values()},
            "return": dict,
        }
        return action_function

    async def call_action(self, action_name: str, arguments: Dict[str, Any]) -> dict:
        """Run a saved action on behalf of the chatbot runtime

        Args:
            action_name: Name of the action to run
            arguments: Argument values chosen by the calling model

        Returns:
            Dict with success, statusCode, extractedData, responseBody and error
        """
        action = self.actions.get(action_name)
        if action is None:
            logging.error(f"[ActionRegistry] Action '{action_name}' not found")
            return {"success": False, "error": f"Action '{action_name}' not found"}
        if not action.is_enabled:
            logging.warning(f"[ActionRegistry] Action '{action_name}' is disabled")
            return {"success": False, "error": f"Action '{action_name}' is disabled"}

        logging.info(f"[ActionRegistry] Calling '{action_name}' with args: {sorted(arguments)}")
        try:
            result = await self.runner.invoke(action, arguments)
        except Exception as e:
            logging.exception(f"[ActionRegistry] Error calling action '{action_name}': {e}")
            return {"success": False, "error": f"Error calling API: {str(e)}"}

        return {
            "success": result.success,
            "statusCode": result.status_code,
            "extractedData": result.extracted_data,
            "responseBody": result.response_body,
            "error": result.error,
        }

    def remove_action(self, action_name: str) -> bool:
        """Remove an action and its corresponding tool

        Returns:
            True if the action was removed, False if it didn't exist
        """
        removed = self.actions.pop(action_name, None) is not None
        removed = (self.tools.pop(action_name, None) is not None) or removed

        if removed:
            logging.info(f"[ActionRegistry] Removed action '{action_name}'")
        else:
            logging.warning(f"[ActionRegistry] Action '{action_name}' not found for removal")
        return removed

    def get_action(self, action_name: str) -> Optional[ActionDefinition]:
        return self.actions.get(action_name)

    def set_enabled(self, action_name: str, enabled: bool) -> ActionDefinition:
        """Enable or disable a saved action without changing its version

        Raises:
            KeyError: If no action with that name exists
        """
        action = self.actions.get(action_name)
        if action is None:
            raise KeyError(f"Action '{action_name}' not found")
        action.is_enabled = enabled
        logging.info(f"[ActionRegistry] {'Enabled' if enabled else 'Disabled'} action '{action_name}'")
        return action

    def get_tools(self) -> Dict[str, FunctionTool]:
        """Tools of enabled actions only"""
        return {
            name: tool
            for name, tool in self.tools.items()
            if self.actions[name].is_enabled
        }

    def list_actions(self, enabled: Optional[bool] = None) -> List[dict]:
        """List saved actions as dictionaries (auth values redacted)

        Args:
            enabled: Only list actions whose enabled flag matches, when given
        """
        return [
            action.to_dict()
            for action in self.actions.values()
            if enabled is None or action.is_enabled == enabled
        ]


__all__ = [
    "ActionRegistry",
]
