"""Bug bounty MCP server: JSON-RPC tool server over stdio."""

__version__ = "1.0.0"
