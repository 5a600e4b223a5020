import dataclasses
import unittest

from custom_actions_mcp.engine.core import ActionMCPServer, format_tool_result
from custom_actions_mcp.engine.errors import ValidationError
from custom_actions_mcp.engine.models import (
    ActionDefinition,
    ApiConfig,
    AuthType,
    InvocationResult,
    Parameter,
    ParamType,
)
from custom_actions_mcp.engine.registry import ActionRegistry
from custom_actions_mcp.engine.runner import ActionRunner


class StubExecutor:
    """Records requests and answers with a canned result"""

    def __init__(self, result: InvocationResult):
        self.result = result
        self.requests = []

    async def execute(self, request, policy):
        self.requests.append((request, policy))
        return dataclasses.replace(self.result, request_url=request.url)


def weather_action() -> ActionDefinition:
    return ActionDefinition(
        name="get_weather",
        description="Look up the current weather for a city",
        api_config=ApiConfig(
            base_url="https://api.ex.com",
            endpoint="/weather",
            auth_type=AuthType.BEARER,
            auth_value="secret-token",
            response_mapping="$.temp",
        ),
        parameters=[
            Parameter(name="city", description="City to look up"),
            Parameter(name="days", type=ParamType.INTEGER, description="Forecast days", required=False, default=1),
        ],
    )


class TestActionRegistry(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.executor = StubExecutor(InvocationResult(success=True, status_code=200, response_body='{"temp": 18}'))
        self.registry = ActionRegistry(ActionRunner(self.executor))

    def test_add_creates_tool(self):
        self.registry.add_action(weather_action())
        self.assertIn("get_weather", self.registry.get_tools())
        self.assertEqual(self.registry.get_tools()["get_weather"].name, "get_weather")

    def test_add_duplicate_rejected(self):
        self.registry.add_action(weather_action())
        with self.assertRaises(ValueError):
            self.registry.add_action(weather_action())

    def test_add_invalid_rejected(self):
        action = weather_action()
        action.description = "short"
        with self.assertRaises(ValidationError):
            self.registry.add_action(action)
        self.assertEqual(self.registry.actions, {})

    def test_update_bumps_version(self):
        self.registry.add_action(weather_action())
        updated = self.registry.update_action(weather_action())
        self.assertEqual(updated.version, 2)
        self.assertEqual(self.registry.update_action(weather_action()).version, 3)

    def test_update_unknown(self):
        with self.assertRaises(KeyError):
            self.registry.update_action(weather_action())

    def test_remove(self):
        self.registry.add_action(weather_action())
        self.assertTrue(self.registry.remove_action("get_weather"))
        self.assertFalse(self.registry.remove_action("get_weather"))
        self.assertEqual(self.registry.get_tools(), {})

    def test_list_redacts_auth_and_includes_schema(self):
        self.registry.add_action(weather_action())
        [listed] = self.registry.list_actions()
        self.assertEqual(listed["apiConfig"]["authValue"], "***")
        self.assertEqual(listed["toolSchema"]["required"], ["city"])
        self.assertEqual(listed["toolSchema"]["properties"]["days"]["type"], "integer")

    async def test_call_action(self):
        self.registry.add_action(weather_action())
        result = await self.registry.call_action("get_weather", {"city": "Lyon"})

        self.assertTrue(result["success"])
        self.assertEqual(result["extractedData"], 18)
        request, _ = self.executor.requests[0]
        self.assertEqual(request.url, "https://api.ex.com/weather?city=Lyon&days=1")
        self.assertEqual(request.headers["Authorization"], "Bearer secret-token")

    async def test_call_action_missing_argument(self):
        self.registry.add_action(weather_action())
        result = await self.registry.call_action("get_weather", {})

        self.assertFalse(result["success"])
        self.assertIn("city", result["error"])
        self.assertEqual(self.executor.requests, [])

    async def test_disabled_action_not_offered(self):
        self.registry.add_action(weather_action())
        self.registry.set_enabled("get_weather", False)

        self.assertEqual(self.registry.get_tools(), {})
        self.assertEqual(self.registry.list_actions(enabled=True), [])
        self.assertFalse(self.registry.list_actions(enabled=False)[0]["isEnabled"])
        result = await self.registry.call_action("get_weather", {"city": "Lyon"})
        self.assertFalse(result["success"])
        self.assertIn("disabled", result["error"])
        self.assertEqual(self.executor.requests, [])

        self.registry.set_enabled("get_weather", True)
        self.assertIn("get_weather", self.registry.get_tools())
        self.assertEqual(self.registry.get_action("get_weather").version, 1)

    def test_set_enabled_unknown(self):
        with self.assertRaises(KeyError):
            self.registry.set_enabled("nope", False)

    async def test_call_unknown_action(self):
        result = await self.registry.call_action("nope", {})
        self.assertFalse(result["success"])


class TestActionMCPServer(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.executor = StubExecutor(InvocationResult(success=True, status_code=200, response_body='{"temp": 18}'))
        self.registry = ActionRegistry(ActionRunner(self.executor))
        self.registry.add_action(weather_action())
        self.server = ActionMCPServer("test-actions", self.registry)

    def test_list_tools(self):
        tools = self.server.list_tools()
        self.assertEqual([t.name for t in tools], ["get_weather"])

    async def test_call_tool(self):
        [content] = await self.server.call_tool("get_weather", {"city": "Lyon"})
        self.assertIn("succeeded", content.text)
        self.assertIn("18", content.text)

    async def test_call_unknown_tool(self):
        [content] = await self.server.call_tool("nope", {})
        self.assertEqual(content.text, "Tool 'nope' not found")

    async def test_disabled_tool_hidden(self):
        self.registry.set_enabled("get_weather", False)
        self.assertEqual(self.server.list_tools(), [])
        [content] = await self.server.call_tool("get_weather", {"city": "Lyon"})
        self.assertEqual(content.text, "Tool 'get_weather' not found")

    def test_format_failure_has_no_data(self):
        text = format_tool_result("get_weather", {
            "success": False,
            "statusCode": 500,
            "error": "API call failed with status 500",
            "responseBody": '{"temp": 99}',
        })
        self.assertEqual(text, "Action 'get_weather' failed (HTTP 500): API call failed with status 500")

    def test_format_success_without_mapping(self):
        text = format_tool_result("get_weather", {"success": True, "responseBody": "plain"})
        self.assertIn("Response Body:\nplain", text)


if __name__ == '__main__':
    unittest.main()
