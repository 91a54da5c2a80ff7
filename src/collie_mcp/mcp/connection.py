"""MCP Connection - one named server's transport, handshake, tools and status."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from collie_mcp.config.models import ClientSettings, ServerConfig
from collie_mcp.errors import CollieError, ErrorFactory, create_error, get_error_factory
from collie_mcp.logging import CollieLogger, ServerLogger
from collie_mcp.types import ConnectionStatus, LogStream

from .transports import Transport, create_transport
from .types import ServerStatus, ToolSchema

# Builds the transport a config selects: (name, config, settings, logger)
TransportFactory = Callable[[str, ServerConfig, ClientSettings, ServerLogger | None], Transport]
# Receives: server_name, stream, message
ConnectionLogCallback = Callable[[str, LogStream, str], None]
# Receives: server_name, reason
DisconnectCallback = Callable[[str, str], None]


class MCPConnection:
    """Single MCP server connection.

    Status moves to CONNECTED only after the transport is open, `initialize`
    was acknowledged and `tools/list` returned. connect() never raises:
    failures leave the connection in ERROR with a message.
    """

    def __init__(
        self,
        name: str,
        config: ServerConfig,
        settings: ClientSettings | None = None,
        logger: CollieLogger | None = None,
        error_factory: ErrorFactory | None = None,
        transport_factory: TransportFactory = create_transport,
    ):
        """Initialize MCP connection.

        Args:
            name: Server name
            config: Server configuration (copied)
            settings: Client identity and timing settings
            logger: Optional logger
            error_factory: Optional error factory
            transport_factory: Builds the transport for the config
        """
        self.name = name
        self.config = config.copy()
        self._settings = settings or ClientSettings()
        self._logger = logger.server(name) if logger else None
        self._error_factory = error_factory or get_error_factory()
        self._transport_factory = transport_factory

        self._status = ConnectionStatus.DISCONNECTED
        self._tools: list[ToolSchema] = []
        self._error: str | None = None
        self._last_error: CollieError | None = None
        self._last_connected: datetime | None = None
        self._server_info: dict[str, Any] = {}
        self._transport: Transport | None = None
        self._closing: asyncio.Task[None] | None = None

        self.on_log: ConnectionLogCallback | None = None
        self.on_disconnected: DisconnectCallback | None = None

    @property
    def status(self) -> ConnectionStatus:
        """Current connection status."""
        return self._status

    @property
    def tools(self) -> list[ToolSchema]:
        """Tools from the last successful tools/list. Empty unless connected."""
        return list(self._tools)

    @property
    def error(self) -> str | None:
        """Why the last connect failed. None unless status is ERROR."""
        return self._error

    @property
    def last_error(self) -> CollieError | None:
        """Structured form of the last connect failure."""
        return self._last_error

    @property
    def server_info(self) -> dict[str, Any]:
        """The `initialize` result (serverInfo, capabilities, ...)."""
        return dict(self._server_info)

    @property
    def transport(self) -> Transport | None:
        """The owned transport, or None when there is no live channel."""
        return self._transport

    @property
    def is_connected(self) -> bool:
        """True if connected and the transport can still send."""
        return (
            self._status == ConnectionStatus.CONNECTED
            and self._transport is not None
            and self._transport.is_open
        )

    def _set_status(self, status: ConnectionStatus, error: str | None = None) -> None:
        self._status = status
        self._error = error if status == ConnectionStatus.ERROR else None
        if status != ConnectionStatus.CONNECTED:
            self._tools = []

    def get_status(self) -> ServerStatus:
        """Get detailed status.

        Returns:
            ServerStatus with current state
        """
        return ServerStatus(
            name=self.name,
            status=self._status,
            transport=self.config.transport_kind,
            tools=[tool.name for tool in self._tools],
            error=self._error,
            last_connected=self._last_connected.isoformat() if self._last_connected else None,
        )

    def get_tool(self, name: str) -> ToolSchema | None:
        """Get tool schema by name."""
        for tool in self._tools:
            if tool.name == name:
                return tool
        return None

    async def connect(self) -> "MCPConnection":
        """Open the transport and perform the MCP handshake.

        Never raises. On failure the status is ERROR and `error` says why.

        Returns:
            self
        """
        await self._teardown()
        self._set_status(ConnectionStatus.DISCONNECTED)

        try:
            transport = self._transport_factory(
                self.name, self.config, self._settings, self._logger
            )
            transport.on_log = self._handle_log
            transport.on_closed = self._handle_closed
            self._transport = transport

            await transport.open()
            tools = await self._handshake(transport)
        except Exception as e:
            error = self._error_factory.from_exception(e, server_name=self.name)
            self._last_error = error
            self._set_status(ConnectionStatus.ERROR, str(error) or error.code)
            if self._logger:
                self._logger.failed(error)
            await self._teardown()
            return self

        self._set_status(ConnectionStatus.CONNECTED)
        self._tools = tools
        self._last_error = None
        self._last_connected = datetime.now(UTC)
        if self._logger:
            self._logger.connected(transport.kind.value, len(tools))
        return self

    async def _handshake(self, transport: Transport) -> list[ToolSchema]:
        """initialize -> notifications/initialized -> tools/list."""
        try:
            result = await transport.request(
                "initialize",
                {
                    "protocolVersion": self._settings.protocol_version,
                    "capabilities": {},
                    "clientInfo": self._settings.client_info(),
                },
            )
        except CollieError as e:
            raise self._handshake_error("initialize", e) from e

        self._server_info = result if isinstance(result, dict) else {}
        await transport.notify("notifications/initialized")

        try:
            return await self._list_tools(transport)
        except CollieError as e:
            raise self._handshake_error("tools/list", e) from e

    def _handshake_error(self, method: str, cause: CollieError) -> CollieError:
        error = create_error(
            "HANDSHAKE_FAILED",
            reason=f"{method} failed: {cause}",
            method=method,
            server_name=self.name,
        )
        error.cause = cause
        error.retryable = cause.retryable
        return error

    async def _list_tools(self, transport: Transport) -> list[ToolSchema]:
        result = await transport.request("tools/list", {})
        raw_tools = result.get("tools") if isinstance(result, dict) else None

        tools = []
        for entry in raw_tools or []:
            if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
                if self._logger:
                    self._logger.warn("Skipping malformed tool entry", entry=entry)
                continue
            tools.append(ToolSchema.from_dict(entry))
        return tools

    async def refresh_tools(self) -> list[ToolSchema]:
        """Re-fetch the tool list from a connected server.

        Raises:
            ServerNotConnectedError: If not connected
        """
        transport = self._require_transport()
        self._tools = await self._list_tools(transport)
        return self.tools

    def _require_transport(self, tool_name: str | None = None) -> Transport:
        transport = self._transport
        if not self.is_connected or transport is None:
            raise create_error(
                "SERVER_NOT_CONNECTED",
                server_name=self.name,
                tool_name=tool_name,
            )
        return transport

    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Call a tool on this server.

        Args:
            tool_name: Tool name
            arguments: Tool arguments
            timeout: Deadline override in seconds

        Returns:
            The raw `tools/call` result

        Raises:
            ServerNotConnectedError: If there is no live transport
            RPCError: If the server answered with an error
            RequestTimeoutError: If no reply arrived in time
        """
        transport = self._require_transport(tool_name)
        try:
            return await transport.request(
                "tools/call",
                {"name": tool_name, "arguments": arguments or {}},
                timeout=timeout,
            )
        except CollieError as e:
            e.tool_name = e.tool_name or tool_name
            raise

    async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send an arbitrary JSON-RPC request over the live transport."""
        return await self._require_transport().request(method, params)

    def _handle_log(self, stream: LogStream, message: str) -> None:
        if self.on_log:
            self.on_log(self.name, stream, message)

    def _handle_closed(self, reason: str) -> None:
        # Launcher wrappers may exit during startup while the server lives on
        if self._status != ConnectionStatus.CONNECTED:
            return

        transport, self._transport = self._transport, None
        self._set_status(ConnectionStatus.DISCONNECTED)
        if transport is not None:
            transport.on_closed = None
            self._closing = asyncio.create_task(transport.close())
        if self._logger:
            self._logger.disconnected(reason)
        if self.on_disconnected:
            self.on_disconnected(self.name, reason)

    async def _teardown(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.on_closed = None
            await transport.close()

        closing, self._closing = self._closing, None
        if closing is not None:
            await closing

    async def disconnect(self) -> None:
        """Close the transport. Safe to call more than once."""
        was_connected = self._status == ConnectionStatus.CONNECTED
        await self._teardown()
        self._set_status(ConnectionStatus.DISCONNECTED)

        if was_connected:
            if self._logger:
                self._logger.disconnected("requested")
            if self.on_disconnected:
                self.on_disconnected(self.name, "requested")
