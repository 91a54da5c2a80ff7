"""Collie MCP client - server connection management over stdio and HTTP + SSE."""

from .connection import MCPConnection
from .correlator import RequestCorrelator, next_request_id
from .events import (
    EventBus,
    EventType,
    LogEvent,
    ServerConnectedEvent,
    ServerDisconnectedEvent,
)
from .launcher import LaunchCommand, resolve_launch_command
from .manager import MCPClientManager
from .protocol import JSONRPCMessage
from .types import CatalogTool, MCPCallResult, ServerStatus, ToolSchema

__all__ = [
    # Connection
    "MCPConnection",
    # Manager
    "MCPClientManager",
    # Events
    "EventBus",
    "EventType",
    "LogEvent",
    "ServerConnectedEvent",
    "ServerDisconnectedEvent",
    # Types
    "ToolSchema",
    "CatalogTool",
    "ServerStatus",
    "MCPCallResult",
    # Protocol
    "JSONRPCMessage",
    "RequestCorrelator",
    "next_request_id",
    # Launching
    "LaunchCommand",
    "resolve_launch_command",
]
