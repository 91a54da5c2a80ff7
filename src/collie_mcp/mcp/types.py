"""MCP client value types."""

from dataclasses import dataclass, field
from typing import Any

from collie_mcp.types import ConnectionStatus, TransportKind


@dataclass(frozen=True)
class ToolSchema:
    """MCP tool schema.

    Represents a tool available from an MCP server. Immutable once fetched.
    """

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolSchema":
        """Build from one entry of a `tools/list` result."""
        return cls(
            name=data["name"],
            description=data.get("description") or "",
            input_schema=data.get("inputSchema") or {"type": "object", "properties": {}},
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the MCP wire shape."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass(frozen=True)
class CatalogTool(ToolSchema):
    """A tool tagged with the server that provides it."""

    server_name: str = ""


@dataclass
class ServerStatus:
    """Status of an MCP server connection.

    Used for status panels and diagnostics.
    """

    name: str
    status: ConnectionStatus
    transport: TransportKind
    tools: list[str] = field(default_factory=list)
    error: str | None = None
    last_connected: str | None = None


@dataclass
class MCPCallResult:
    """Result of an MCP tool call as handed to UI code.

    Unlike MCPClientManager.call_tool(), producing one of these never raises:
    failures are reported through `success` and `error`.
    """

    success: bool
    result: Any = None  # Raw `tools/call` result
    content: str | None = None  # Concatenated text content blocks
    duration_ms: int = 0
    error: str | None = None
    is_error: bool = False  # MCP isError flag
