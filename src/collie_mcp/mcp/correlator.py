"""Request correlation - matches JSON-RPC replies to the requests awaiting them.

One RequestCorrelator belongs to one transport. Request ids come from a
process-wide counter, so they never collide across connections either.
"""

import asyncio
import itertools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from collie_mcp.errors import create_error, get_error_factory
from collie_mcp.logging import ServerLogger

from .protocol import JSONRPCMessage

# Sends one encoded message over the owning transport
Transmit = Callable[[dict[str, Any]], Awaitable[None]]

_request_ids = itertools.count(1)


def next_request_id() -> int:
    """Return the next request id. Strictly increasing for the process lifetime."""
    return next(_request_ids)


@dataclass
class PendingRequest:
    """A request waiting for its reply."""

    id: int
    method: str
    future: asyncio.Future[Any]


class RequestCorrelator:
    """Tracks in-flight requests by id and settles them from inbound replies."""

    def __init__(
        self,
        transmit: Transmit,
        timeout: float,
        server_name: str | None = None,
        logger: ServerLogger | None = None,
    ):
        """Initialize correlator.

        Args:
            transmit: Coroutine that writes one message to the wire
            timeout: Default per-request deadline in seconds
            server_name: Server name for error context
            logger: Optional server-scoped logger
        """
        self._transmit = transmit
        self._timeout = timeout
        self._server_name = server_name
        self._logger = logger
        self._pending: dict[int, PendingRequest] = {}

    @property
    def timeout(self) -> float:
        """Default per-request deadline in seconds."""
        return self._timeout

    @property
    def pending_count(self) -> int:
        """Number of requests still awaiting a reply."""
        return len(self._pending)

    def pending_ids(self) -> list[int]:
        """Ids of requests still awaiting a reply, in send order."""
        return list(self._pending)

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for its reply.

        Args:
            method: JSON-RPC method
            params: Optional parameters
            timeout: Deadline override in seconds

        Returns:
            The `result` member of the reply

        Raises:
            RPCError: If the server replied with an error object
            RequestTimeoutError: If no reply arrived before the deadline
            CollieError: If the transport failed to send or went away
        """
        request_id = next_request_id()
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(request_id, method, future)
        deadline = self._timeout if timeout is None else timeout
        message = JSONRPCMessage.request(method, params, id=request_id)

        try:
            return await asyncio.wait_for(self._exchange(message, future), timeout=deadline)
        except TimeoutError as e:
            if self._logger:
                self._logger.warn(
                    f"Request timeout for {method} (id: {request_id})",
                    request_id=request_id,
                    method=method,
                )
            raise create_error(
                "REQUEST_TIMEOUT",
                method=method,
                request_id=request_id,
                timeout_seconds=deadline,
                server_name=self._server_name,
            ) from e
        finally:
            self._pending.pop(request_id, None)

    async def _exchange(self, message: dict[str, Any], future: asyncio.Future[Any]) -> Any:
        await self._transmit(message)
        return await future

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a one-way notification. No pending entry is created."""
        await self._transmit(JSONRPCMessage.notification(method, params))

    def dispatch(self, message: dict[str, Any]) -> bool:
        """Route an inbound message to the request it answers.

        Messages without an id, server-initiated requests and replies to
        unknown ids are ignored. Ids are only ever integers, so replies
        carrying any other id can never match.

        Args:
            message: Parsed JSON-RPC message

        Returns:
            True if a pending request was settled
        """
        request_id = message.get("id")
        if request_id is None or not JSONRPCMessage.is_response(message):
            return False
        if isinstance(request_id, bool) or not isinstance(request_id, int):
            if self._logger:
                self._logger.debug(f"Dropping reply with non-integer id {request_id!r}")
            return False

        pending = self._pending.get(request_id)
        if pending is None:
            if self._logger:
                self._logger.debug(f"Dropping reply for unknown request id {request_id}")
            return False
        return self._settle(pending, message)

    def settle(self, request_id: int, message: dict[str, Any]) -> bool:
        """Settle a specific request from a reply received out of band.

        Used for replies that arrive in the body of the HTTP POST that carried
        the request rather than on the event stream.

        Returns:
            True if the request was still pending and is now settled
        """
        pending = self._pending.get(request_id)
        if pending is None:
            return False
        return self._settle(pending, message)

    def _settle(self, pending: PendingRequest, message: dict[str, Any]) -> bool:
        if pending.future.done():
            return False

        self._pending.pop(pending.id, None)
        if JSONRPCMessage.is_error(message):
            pending.future.set_exception(
                get_error_factory().from_rpc_error(
                    JSONRPCMessage.get_error(message),
                    method=pending.method,
                    server_name=self._server_name,
                    request_id=pending.id,
                )
            )
        else:
            pending.future.set_result(JSONRPCMessage.get_result(message))
        return True

    def fail_all(self, reason: str) -> int:
        """Reject every outstanding request because the transport is gone.

        Args:
            reason: Why the transport closed

        Returns:
            Number of requests rejected
        """
        failed = 0
        for pending in list(self._pending.values()):
            self._pending.pop(pending.id, None)
            if pending.future.done():
                continue
            pending.future.set_exception(
                create_error(
                    "TRANSPORT_CLOSED",
                    reason=reason,
                    method=pending.method,
                    server_name=self._server_name or "unknown",
                )
            )
            failed += 1
        return failed
