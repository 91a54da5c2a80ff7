"""Shared enumerations for Collie MCP."""

from enum import Enum


class LogLevel(str, Enum):
    """Log verbosity level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Log output format."""

    COLORED = "colored"
    JSON = "json"


class TransportKind(str, Enum):
    """MCP connection transport type."""

    STDIO = "stdio"
    SSE = "sse"


class ConnectionStatus(str, Enum):
    """MCP server connection status.

    There is no externally visible "connecting" state: callers only observe
    a connection once connect_to_server() has settled.
    """

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class LogStream(str, Enum):
    """Source of a server log line."""

    STDOUT = "stdout"
    STDERR = "stderr"
    INFO = "info"
    ERROR = "error"
