"""Custom action engine for chatbot tool calling, served over MCP."""

__version__ = "0.1.0"
