"""MCP transports - stdio child processes and HTTP + SSE."""

from .base import ClosedCallback, LogCallback, Transport
from .factory import create_transport
from .sse import SSEEvent, SSEEventParser, SSETransport, default_message_endpoint
from .stdio import LineFramer, StdioTransport

__all__ = [
    "Transport",
    "LogCallback",
    "ClosedCallback",
    "create_transport",
    # Stdio
    "StdioTransport",
    "LineFramer",
    # HTTP + SSE
    "SSETransport",
    "SSEEvent",
    "SSEEventParser",
    "default_message_endpoint",
]
