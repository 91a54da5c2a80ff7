"""Transport interface shared by the stdio and SSE transports."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from collie_mcp.config.models import ClientSettings, ServerConfig
from collie_mcp.logging import ServerLogger
from collie_mcp.types import LogStream, TransportKind

from ..correlator import RequestCorrelator

# Receives (stream, message) for every diagnostic line
LogCallback = Callable[[LogStream, str], None]
# Receives the reason the transport closed on its own
ClosedCallback = Callable[[str], None]


class Transport(ABC):
    """One exclusively owned channel to one MCP server.

    A transport owns its RequestCorrelator: requests go out through the
    correlator and replies read off the wire are dispatched back into it.
    """

    kind: TransportKind

    def __init__(
        self,
        name: str,
        config: ServerConfig,
        settings: ClientSettings,
        request_timeout: float,
        logger: ServerLogger | None = None,
    ):
        """Initialize transport.

        Args:
            name: Server name
            config: Server configuration
            settings: Client timing settings
            request_timeout: Per-request deadline in seconds
            logger: Optional server-scoped logger
        """
        self.name = name
        self.config = config
        self.settings = settings
        self._logger = logger
        self.correlator = RequestCorrelator(
            self._transmit,
            timeout=request_timeout,
            server_name=name,
            logger=logger,
        )
        self.on_log: LogCallback | None = None
        self.on_closed: ClosedCallback | None = None
        self._closed = False

    def _emit_log(self, stream: LogStream, message: str) -> None:
        if self._logger:
            self._logger.stream(stream, message)
        if self.on_log:
            self.on_log(stream, message)

    def _notify_closed(self, reason: str) -> None:
        """Report that the peer went away. Fires at most once."""
        if self._closed:
            return
        self._closed = True
        if self.on_closed:
            self.on_closed(reason)

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True while requests can be sent."""

    @abstractmethod
    async def open(self) -> None:
        """Open the channel. Raises a CollieError on failure."""

    @abstractmethod
    async def _transmit(self, message: dict[str, Any]) -> None:
        """Write one JSON-RPC message to the wire."""

    @abstractmethod
    async def close(self) -> None:
        """Tear the channel down. Idempotent."""

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for the `result` of its reply."""
        return await self.correlator.request(method, params, timeout=timeout)

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a one-way notification."""
        await self.correlator.notify(method, params)
