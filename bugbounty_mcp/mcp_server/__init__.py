"""MCP server core: framing, classification, lifecycle and tool dispatch."""

from bugbounty_mcp.mcp_server.models import ToolOutcome
from bugbounty_mcp.mcp_server.registry import ToolDescriptor, ToolRegistry
from bugbounty_mcp.mcp_server.server import McpServer
from bugbounty_mcp.mcp_server.settings import ServerSettings

__all__ = ["McpServer", "ServerSettings", "ToolDescriptor", "ToolOutcome", "ToolRegistry"]
