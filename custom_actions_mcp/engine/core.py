"""MCP server exposing saved custom actions as tools.

This module provides the ActionMCPServer class which handles tool listing
and execution for the chatbot runtime, delegating to an ActionRegistry.
"""

import json
import logging

from google.adk.tools.mcp_tool.conversion_utils import adk_to_mcp_tool_type
from mcp import types as mcp_types
from mcp.server.lowlevel import Server

from .registry import ActionRegistry


def format_tool_result(name: str, result: dict) -> str:
    """Render a registry result as text for the calling model

    A failed call is reported as a failure; no data is presented for it.
    """
    if not result.get("success"):
        status = result.get("statusCode")
        prefix = f"Action '{name}' failed"
        if status is not None:
            prefix += f" (HTTP {status})"
        return f"{prefix}: {result.get('error') or 'Unknown error occurred'}"

    data = result.get("extractedData")
    if data is not None:
        return f"Action '{name}' succeeded\n\nExtracted Data:\n{json.dumps(data, indent=2)}"
    body = result.get("responseBody")
    if body:
        return f"Action '{name}' succeeded\n\nResponse Body:\n{body}"
    return f"Action '{name}' succeeded - no data returned"


class ActionMCPServer:
    """MCP Server that serves tools from an ActionRegistry

    Args:
        server_name: Name for the MCP server instance
        registry: ActionRegistry instance to get tools from
    """

    def __init__(self, server_name: str = "custom-actions-mcp", registry: ActionRegistry = None):
        self.server_name = server_name
        self.server = Server(server_name)
        self.registry = registry or ActionRegistry()
        self._setup_server()
        logging.info(f"[ActionMCP] Initialized MCP server '{server_name}'")

    def _setup_server(self) -> None:
        """Setup the MCP server with list_tools and call_tool handlers"""

        @self.server.list_tools()
        async def list_tools():
            return self.list_tools()

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict):
            return await self.call_tool(name, arguments)

    def list_tools(self) -> list:
        tool_list = []
        for tool in self.registry.get_tools().values():
            try:
                tool_list.append(adk_to_mcp_tool_type(tool))
            except Exception as e:
                logging.error(f"[ActionMCP] Error converting tool {tool.name} to MCP type: {e}")
        logging.info(f"[ActionMCP] Returning {len(tool_list)} tools to MCP client")
        return tool_list

    async def call_tool(self, name: str, arguments: dict) -> list:
        logging.info(f"[ActionMCP] Tool call: {name} with args: {sorted((arguments or {}).keys())}")
        try:
            tool = self.registry.get_tools().get(name)
            if tool is None:
                logging.warning(f"[ActionMCP] Tool '{name}' not found")
                return [mcp_types.TextContent(type="text", text=f"Tool '{name}' not found")]

            result = await tool.run_async(args=arguments or {}, tool_context=None)
            if isinstance(result, dict) and "success" in result:
                text = format_tool_result(name, result)
            elif isinstance(result, dict) and "error" in result:
                # argument checks done by the tool wrapper itself
                text = f"Action '{name}' failed: {result['error']}"
            else:
                text = str(result)
            return [mcp_types.TextContent(type="text", text=text)]

        except Exception as e:
            logging.exception(f"[ActionMCP] Error executing tool '{name}': {e}")
            return [mcp_types.TextContent(type="text", text=f"Error executing tool: {str(e)}")]

    def get_server(self) -> Server:
        return self.server

    def get_registry(self) -> ActionRegistry:
        return self.registry


__all__ = [
    "ActionMCPServer",
    "format_tool_result",
]
