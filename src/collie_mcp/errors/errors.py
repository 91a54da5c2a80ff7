"""Collie error types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error source categories."""

    CONFIG = "CONFIG"
    TRANSPORT = "TRANSPORT"
    PROTOCOL = "PROTOCOL"
    TOOL = "TOOL"
    SYSTEM = "SYSTEM"


@dataclass
class CollieError(Exception):
    """Structured error with context. Base exception for all Collie errors."""

    # Identity
    code: str  # e.g., "PROCESS_SPAWN_FAILED"
    category: ErrorCategory

    # Messages
    message: str  # Human-readable summary
    detail: str | None = None  # Extended explanation
    suggestion: str | None = None  # Actionable fix

    # Context
    retryable: bool = False
    server_name: str | None = None
    tool_name: str | None = None
    method: str | None = None  # JSON-RPC method in flight

    # Error chain (max depth 3)
    cause: "CollieError | None" = None

    # Metadata
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Set Exception message."""
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for status panels and log sinks.

        Returns:
            Dictionary representation of the error
        """
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "detail": self.detail,
            "suggestion": self.suggestion,
            "retryable": self.retryable,
            "server_name": self.server_name,
            "tool_name": self.tool_name,
            "method": self.method,
            "timestamp": self.timestamp.isoformat(),
            "cause": self.cause.to_dict() if self.cause else None,
        }

    def with_context(
        self,
        server_name: str | None = None,
        tool_name: str | None = None,
        method: str | None = None,
    ) -> "CollieError":
        """Return copy with additional context.

        Args:
            server_name: Optional server name
            tool_name: Optional tool name
            method: Optional JSON-RPC method

        Returns:
            New error of the same class with updated context
        """
        return replace(
            self,
            server_name=server_name or self.server_name,
            tool_name=tool_name or self.tool_name,
            method=method or self.method,
        )


class ConfigError(CollieError):
    """A server or client configuration is missing a field or malformed."""


class ProcessSpawnError(CollieError):
    """A stdio server process failed to start or exited immediately."""


class ConnectTimeoutError(CollieError):
    """The SSE stream did not return response headers in time."""


class HttpStatusError(CollieError):
    """An HTTP exchange returned an unexpected status code."""


class ConnectionFailedError(CollieError):
    """The transport could not be reached or went away."""


class HandshakeError(CollieError):
    """The initialize or tools/list round trip failed."""


class RequestTimeoutError(CollieError):
    """A JSON-RPC request exceeded its deadline."""


class ServerNotConnectedError(CollieError):
    """A call targeted a server with no live connection."""


class ProtocolParseError(CollieError):
    """An inbound line or event was not valid JSON-RPC."""


class RPCError(CollieError):
    """The server answered a request with a JSON-RPC error object."""


class RequestEncodeError(CollieError):
    """An outgoing request could not be serialized to JSON."""


# Error code -> exception class. Codes not listed use CollieError.
ERROR_CLASSES: dict[str, type[CollieError]] = {
    "CONFIG_INVALID": ConfigError,
    "PROCESS_SPAWN_FAILED": ProcessSpawnError,
    "CONNECT_TIMEOUT": ConnectTimeoutError,
    "HTTP_STATUS": HttpStatusError,
    "CONNECTION_FAILED": ConnectionFailedError,
    "TRANSPORT_CLOSED": ConnectionFailedError,
    "HANDSHAKE_FAILED": HandshakeError,
    "REQUEST_TIMEOUT": RequestTimeoutError,
    "SERVER_NOT_CONNECTED": ServerNotConnectedError,
    "PROTOCOL_PARSE": ProtocolParseError,
    "RPC_ERROR": RPCError,
    "REQUEST_ENCODE_FAILED": RequestEncodeError,
}


@dataclass
class ErrorTemplate:
    """Template for creating errors."""

    code: str
    category: ErrorCategory
    message_template: str  # "MCP server '{server_name}' is not connected"
    detail_template: str | None = None
    suggestion_template: str | None = None
    default_retryable: bool = False


@dataclass
class MatchResult:
    """Result of matching an exception."""

    error_code: str
    context: dict[str, Any]
    retryable: bool | None = None  # None = use template default


class ErrorMatcher(ABC):
    """Base class for exception matchers."""

    @abstractmethod
    def matches(self, error: Exception) -> bool:
        """Check if this matcher handles the error.

        Args:
            error: Exception to check

        Returns:
            True if this matcher can handle the error
        """

    @abstractmethod
    def extract(self, error: Exception) -> MatchResult:
        """Extract error info from the exception.

        Args:
            error: Exception to extract from

        Returns:
            MatchResult with error code and context
        """
