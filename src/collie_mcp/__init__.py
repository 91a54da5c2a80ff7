"""Collie MCP - the MCP client and transport layer of the Collie editor.

Connects to Model Context Protocol tool servers over stdio or HTTP + SSE,
tracks per-server status and exposes one tool-calling surface.
"""

from collie_mcp.mcp import MCPClientManager, MCPConnection

__version__ = "0.1.0"
__all__ = ["__version__", "MCPClientManager", "MCPConnection"]
