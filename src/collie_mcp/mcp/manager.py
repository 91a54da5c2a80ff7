"""MCP Client Manager - the single entry point for all named server connections."""

import asyncio
import time
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from collie_mcp.config.models import ClientSettings, ServerConfig
from collie_mcp.config.workspace import read_workspace_config
from collie_mcp.errors import ErrorFactory, create_error, get_error_factory
from collie_mcp.logging import MANAGER_COMPONENT, CollieLogger
from collie_mcp.types import ConnectionStatus, LogLevel, LogStream

from .connection import MCPConnection, TransportFactory
from .events import (
    EventBus,
    EventCallback,
    EventType,
    LogEvent,
    ServerConnectedEvent,
    ServerDisconnectedEvent,
)
from .transports import create_transport
from .types import CatalogTool, MCPCallResult, ServerStatus


class MCPClientManager:
    """Manages all MCP server connections.

    Holds at most one MCPConnection per server name. Mutations of the
    connection map for a name are serialised, so a connect in progress and a
    concurrent disconnect of the same name cannot leave a stale transport
    behind.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        logger: CollieLogger | None = None,
        error_factory: ErrorFactory | None = None,
        transport_factory: TransportFactory = create_transport,
    ):
        """Initialize MCP client manager.

        Args:
            settings: Client identity and timing settings
            logger: Optional logger
            error_factory: Optional error factory
            transport_factory: Builds transports; replaced in tests
        """
        self._settings = settings or ClientSettings()
        self._logger = logger
        self._error_factory = error_factory or get_error_factory()
        self._transport_factory = transport_factory
        self._connections: dict[str, MCPConnection] = {}
        self._configs: dict[str, ServerConfig] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._events = EventBus(logger)

    def _log(self, level: LogLevel, message: str, **context: Any) -> None:
        """Log message if logger available."""
        if self._logger:
            self._logger._log(level, MANAGER_COMPONENT, message, context or None)

    @asynccontextmanager
    async def _lock(self, name: str) -> AsyncIterator[None]:
        """Hold the per-name lock. The entry is dropped once nobody holds or awaits it."""
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()
        self._lock_users[name] = self._lock_users.get(name, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[name] -= 1
            if not self._lock_users[name]:
                del self._lock_users[name]
                del self._locks[name]

    # Events

    def subscribe(self, event_type: EventType | str, callback: EventCallback) -> Callable[[], None]:
        """Register for `log`, `serverConnected` or `serverDisconnected` events.

        Args:
            event_type: Event type
            callback: Called with a LogEvent, ServerConnectedEvent or
                ServerDisconnectedEvent

        Returns:
            A function that removes the subscription
        """
        return self._events.subscribe(event_type, callback)

    def unsubscribe(self, event_type: EventType | str, callback: EventCallback) -> bool:
        """Remove a subscription. Returns False if it was not registered."""
        return self._events.unsubscribe(event_type, callback)

    def _handle_log(self, server_name: str, stream: LogStream, message: str) -> None:
        self._events.emit(LogEvent(server_name=server_name, stream=stream, message=message))

    def _handle_disconnected(self, server_name: str, reason: str) -> None:
        self._events.emit(ServerDisconnectedEvent(server_name=server_name, reason=reason))

    # Connecting

    async def connect_to_server(self, name: str, config: ServerConfig) -> MCPConnection:
        """Connect to one server, replacing any existing connection of that name.

        Never raises: a failed connect returns a connection with status ERROR,
        which stays in the map so callers can see why it failed.

        Args:
            name: Server name
            config: Server configuration

        Returns:
            The new MCPConnection
        """
        async with self._lock(name):
            await self._disconnect_locked(name)
            self._configs[name] = config.copy()

            conn = self._new_connection(name, config)
            if config.disabled:
                self._log(LogLevel.INFO, f"Skipping disabled server '{name}'")
                return conn

            self._log(
                LogLevel.INFO,
                f"Connecting to '{name}' ({config.transport_kind.value})",
            )
            self._connections[name] = conn
            await conn.connect()

            if conn.status == ConnectionStatus.CONNECTED:
                self._events.emit(
                    ServerConnectedEvent(server_name=name, tool_count=len(conn.tools))
                )
            return conn

    def _new_connection(self, name: str, config: ServerConfig) -> MCPConnection:
        conn = MCPConnection(
            name=name,
            config=config,
            settings=self._settings,
            logger=self._logger,
            error_factory=self._error_factory,
            transport_factory=self._transport_factory,
        )
        conn.on_log = self._handle_log
        conn.on_disconnected = self._handle_disconnected
        return conn

    async def connect_all(
        self,
        servers: Mapping[str, ServerConfig],
        parallel: bool = False,
    ) -> dict[str, ServerStatus]:
        """Connect to a set of servers.

        Servers are connected one at a time unless `parallel` is set. One
        server failing never stops the others. Disabled servers are skipped.

        Args:
            servers: Server name -> configuration
            parallel: Connect all servers concurrently

        Returns:
            Dict of server name to status, for the servers attempted
        """
        enabled = {name: config for name, config in servers.items() if not config.disabled}
        if not enabled:
            self._log(LogLevel.INFO, "No MCP servers configured")
            return {}

        self._log(LogLevel.INFO, f"Connecting to {len(enabled)} MCP servers")

        if parallel:
            conns = await asyncio.gather(
                *(self.connect_to_server(name, config) for name, config in enabled.items())
            )
        else:
            conns = [
                await self.connect_to_server(name, config) for name, config in enabled.items()
            ]

        status_dict = {conn.name: conn.get_status() for conn in conns}
        connected = sum(1 for s in status_dict.values() if s.status == ConnectionStatus.CONNECTED)
        self._log(LogLevel.INFO, f"Connected to {connected}/{len(status_dict)} servers")
        return status_dict

    async def connect_workspace(
        self,
        workspace: str | Path,
        parallel: bool = False,
    ) -> dict[str, ServerStatus]:
        """Connect every server listed in a workspace's .mcp.json.

        Args:
            workspace: Workspace directory
            parallel: Connect all servers concurrently

        Returns:
            Dict of server name to status; empty if there is no .mcp.json

        Raises:
            ConfigError: If the .mcp.json exists but is malformed
        """
        config = read_workspace_config(workspace)
        if config is None:
            self._log(LogLevel.INFO, f"No .mcp.json in {workspace}")
            return {}
        return await self.connect_all(config.servers, parallel=parallel)

    async def reconnect_server(
        self,
        name: str,
        config: ServerConfig | None = None,
    ) -> MCPConnection:
        """Disconnect and connect again.

        Args:
            name: Server name
            config: New configuration; defaults to the last one used for `name`

        Returns:
            The new MCPConnection. If no configuration is known for `name`,
            an ERROR connection that is not stored.
        """
        config = config or self._configs.get(name)
        if config is None:
            conn = self._new_connection(name, ServerConfig())
            conn._set_status(ConnectionStatus.ERROR, "Server not found in config")
            self._log(LogLevel.WARN, f"Cannot reconnect '{name}': server not found in config")
            return conn

        self._log(LogLevel.INFO, f"Reconnecting '{name}'")
        return await self.connect_to_server(name, config)

    # Disconnecting

    async def disconnect_server(self, name: str) -> None:
        """Tear down a server's transport and forget it. No-op for unknown names."""
        async with self._lock(name):
            await self._disconnect_locked(name)

    async def _disconnect_locked(self, name: str) -> None:
        conn = self._connections.pop(name, None)
        if conn is None:
            return
        self._log(LogLevel.INFO, f"Disconnecting '{name}'")
        await conn.disconnect()

    async def disconnect_all(self) -> None:
        """Disconnect every tracked server, one at a time."""
        if not self._connections:
            return
        self._log(LogLevel.INFO, "Disconnecting from all MCP servers")
        for name in list(self._connections):
            await self.disconnect_server(name)
        self._log(LogLevel.INFO, "Disconnected from all servers")

    # Tool calls

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Call a tool on a specific server.

        Args:
            server_name: Name of MCP server
            tool_name: Name of tool
            arguments: Tool arguments
            timeout: Deadline override in seconds

        Returns:
            The raw `tools/call` result

        Raises:
            ServerNotConnectedError: If the server is absent or cannot send
            RPCError: If the server answered with an error
            RequestTimeoutError: If no reply arrived in time
        """
        conn = self._connections.get(server_name)
        if conn is None:
            raise create_error(
                "SERVER_NOT_CONNECTED",
                server_name=server_name,
                tool_name=tool_name,
            )
        return await conn.call_tool(tool_name, arguments, timeout=timeout)

    async def invoke_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> MCPCallResult:
        """Call a tool and report the outcome instead of raising.

        Returns:
            MCPCallResult; `success` is False with `error` set on any failure
        """
        start = time.monotonic()
        try:
            result = await self.call_tool(server_name, tool_name, arguments, timeout=timeout)
        except Exception as e:
            error = self._error_factory.from_exception(
                e, server_name=server_name, tool_name=tool_name, method="tools/call"
            )
            self._log(
                LogLevel.WARN,
                f"Tool call {server_name}/{tool_name} failed: {error}",
                code=error.code,
            )
            return MCPCallResult(
                success=False,
                duration_ms=int((time.monotonic() - start) * 1000),
                error=str(error),
            )

        return MCPCallResult(
            success=True,
            result=result,
            content=_text_content(result),
            duration_ms=int((time.monotonic() - start) * 1000),
            is_error=bool(result.get("isError")) if isinstance(result, dict) else False,
        )

    # Queries

    def get_connection(self, name: str) -> MCPConnection | None:
        """Get connection by server name."""
        return self._connections.get(name)

    def get_all_connections(self) -> list[MCPConnection]:
        """All tracked connections, in insertion order."""
        return list(self._connections.values())

    def get_all_tools(self) -> list[CatalogTool]:
        """Tools of every connected server, each tagged with its server name.

        Servers in ERROR or DISCONNECTED contribute nothing.
        """
        catalog = []
        for name, conn in self._connections.items():
            if conn.status != ConnectionStatus.CONNECTED:
                continue
            for tool in conn.tools:
                catalog.append(
                    CatalogTool(
                        name=tool.name,
                        description=tool.description,
                        input_schema=tool.input_schema,
                        server_name=name,
                    )
                )
        return catalog

    def get_status(self) -> dict[str, ServerStatus]:
        """Get status of all connections."""
        return {name: conn.get_status() for name, conn in self._connections.items()}

    def get_status_summary(self) -> dict[str, Any]:
        """Summary for a status indicator.

        Returns:
            {total, connected, has_errors, status}; status is "connected" if
            any server is, else "error" if any failed, else "disconnected"
        """
        statuses = [conn.status for conn in self._connections.values()]
        total = len(statuses)
        connected = statuses.count(ConnectionStatus.CONNECTED)
        has_errors = ConnectionStatus.ERROR in statuses

        if connected > 0:
            status = ConnectionStatus.CONNECTED.value
        elif has_errors:
            status = ConnectionStatus.ERROR.value
        else:
            status = ConnectionStatus.DISCONNECTED.value

        return {
            "total": total,
            "connected": connected,
            "has_errors": has_errors,
            "status": status,
        }


def _text_content(result: Any) -> str | None:
    """Join the text blocks of a `tools/call` result."""
    if not isinstance(result, dict):
        return None
    blocks = result.get("content")
    if not isinstance(blocks, list):
        return None
    texts = [
        block["text"]
        for block in blocks
        if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
    ]
    return "\n".join(texts) if texts else None
