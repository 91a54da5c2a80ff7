"""HTTP + SSE transport.

The server streams events on a long-lived GET; requests are POSTed to a
message endpoint announced by an `endpoint` event. Replies arrive either in
the POST response body or later as an SSE `message` event, whichever comes
first.
"""

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import httpx

from collie_mcp.config.models import ClientSettings, ServerConfig
from collie_mcp.errors import create_error, get_error_factory
from collie_mcp.logging import ServerLogger
from collie_mcp.types import LogStream, TransportKind

from ..protocol import JSONRPCMessage
from .base import Transport

_SSE_SUFFIX = re.compile(r"/sse/?$")


def default_message_endpoint(url: str) -> str:
    """Message endpoint used until the server announces one.

    >>> default_message_endpoint("http://localhost:3000/sse")
    'http://localhost:3000/message'
    """
    return _SSE_SUFFIX.sub("", url) + "/message"


@dataclass(frozen=True)
class SSEEvent:
    """One dispatched server-sent event."""

    event: str
    data: str


class SSEEventParser:
    """Incremental parser for a text/event-stream body.

    The events produced do not depend on how the stream was chunked.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, chunk: str) -> list[SSEEvent]:
        """Add a chunk and return the events it completed.

        Events are separated by a blank line. `data:` lines of one event are
        concatenated; events without data are skipped; `:` lines are comments.
        """
        self._buffer = (self._buffer + chunk).replace("\r\n", "\n")
        *blocks, self._buffer = self._buffer.split("\n\n")

        events = []
        for block in blocks:
            event = self._parse_block(block)
            if event is not None:
                events.append(event)
        return events

    @staticmethod
    def _parse_block(block: str) -> SSEEvent | None:
        event_type = "message"
        data: list[str] = []

        for line in block.split("\n"):
            if not line or line.startswith(":"):
                continue
            name, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            if name == "event":
                event_type = value.strip() or "message"
            elif name == "data":
                data.append(value)

        payload = "".join(data)
        if not payload:
            return None
        return SSEEvent(event=event_type, data=payload)


class SSETransport(Transport):
    """HTTP + Server-Sent-Events transport built on httpx."""

    kind = TransportKind.SSE

    def __init__(
        self,
        name: str,
        config: ServerConfig,
        settings: ClientSettings | None = None,
        logger: ServerLogger | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize SSE transport.

        Args:
            name: Server name
            config: Server configuration (must have a url)
            settings: Client timing settings
            logger: Optional server-scoped logger
            client: httpx client to use; one is created and owned if omitted
        """
        settings = settings or ClientSettings()
        super().__init__(name, config, settings, settings.sse_request_timeout, logger)
        self.url = config.url or ""
        self.endpoint = default_message_endpoint(self.url)
        self._client = client
        self._owns_client = client is None
        self._response: httpx.Response | None = None
        self._reader: asyncio.Task[None] | None = None
        self._parser = SSEEventParser()

    @property
    def is_open(self) -> bool:
        """True while the event stream is open."""
        return self._response is not None and not self._closed

    async def open(self) -> None:
        """Open the event stream and wait for the endpoint grace period.

        Raises:
            ConnectTimeoutError: If no response headers arrive in time
            HttpStatusError: If the stream responds with a status other than 200
            ConnectionFailedError: On any other transport failure
        """
        self._emit_log(LogStream.INFO, f"Connecting to SSE server: {self.url}")
        try:
            response = await self._open_stream()
        except Exception:
            await self.close()
            raise

        self._response = response
        self._emit_log(LogStream.INFO, "SSE connection established")
        self._reader = asyncio.create_task(self._read_stream(response))

        # Let the server announce its message endpoint before the first request
        await asyncio.sleep(self.settings.endpoint_grace_period)

    async def _open_stream(self) -> httpx.Response:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.sse_request_timeout, read=None)
            )

        headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
            **self.config.headers,
        }
        timeout = self.settings.sse_connect_timeout

        try:
            request = self._client.build_request("GET", self.url, headers=headers)
            response = await asyncio.wait_for(
                self._client.send(request, stream=True), timeout=timeout
            )
        except (TimeoutError, httpx.TimeoutException) as e:
            raise create_error(
                "CONNECT_TIMEOUT",
                timeout_seconds=timeout,
                url=self.url,
                server_name=self.name,
            ) from e
        except httpx.InvalidURL as e:
            raise create_error(
                "CONNECTION_FAILED", reason=f"Invalid URL: {e}", server_name=self.name
            ) from e
        except httpx.HTTPError as e:
            raise create_error(
                "CONNECTION_FAILED",
                reason=str(e) or type(e).__name__,
                server_name=self.name,
            ) from e

        if response.status_code != 200:
            await response.aclose()
            raise create_error(
                "HTTP_STATUS",
                status_code=response.status_code,
                reason=response.reason_phrase,
                server_name=self.name,
            )
        return response

    async def _read_stream(self, response: httpx.Response) -> None:
        try:
            async for chunk in response.aiter_text():
                for event in self._parser.feed(chunk):
                    self._handle_event(event)
        except (httpx.HTTPError, httpx.StreamError) as e:
            self._emit_log(LogStream.ERROR, f"SSE error: {e}")
            reason = f"stream error: {e}"
        else:
            self._emit_log(LogStream.INFO, "SSE connection closed")
            reason = "stream ended"

        self.correlator.fail_all(reason)
        self._notify_closed(reason)

    def _handle_event(self, event: SSEEvent) -> None:
        if event.event == "endpoint":
            self._set_endpoint(event.data)
        elif event.event == "message":
            try:
                message = JSONRPCMessage.parse(event.data)
            except ValueError as e:
                error = create_error(
                    "PROTOCOL_PARSE",
                    reason=str(e),
                    raw=event.data[:100],
                    server_name=self.name,
                )
                if self._logger:
                    self._logger.warn(error.message, code=error.code)
                return
            try:
                self.correlator.dispatch(message)
            except Exception as e:
                # One bad event must not stop the stream reader
                if self._logger:
                    self._logger.warn(f"Failed to handle message: {e}", raw=event.data[:100])
        elif self._logger:
            self._logger.debug(f"Ignoring SSE event '{event.event}'")

    def _set_endpoint(self, data: str) -> None:
        """Replace the message endpoint; a malformed URL keeps the previous one."""
        parsed: httpx.URL | None
        try:
            parsed = httpx.URL(urljoin(self.url, data.strip()))
        except (ValueError, httpx.InvalidURL):
            parsed = None

        if parsed is None or parsed.scheme not in ("http", "https") or not parsed.host:
            if self._logger:
                self._logger.warn(
                    f"Ignoring invalid endpoint URL: {data}", endpoint=self.endpoint
                )
            return

        self.endpoint = str(parsed)
        self._emit_log(LogStream.INFO, f"Message endpoint: {self.endpoint}")

    async def _transmit(self, message: dict[str, Any]) -> None:
        method = message.get("method")
        if self._client is None or self._closed:
            raise create_error(
                "TRANSPORT_CLOSED",
                reason="event stream is not open",
                server_name=self.name,
                method=method,
            )

        headers = {"Content-Type": "application/json", **self.config.headers}
        try:
            body = json.dumps(message)
        except (TypeError, ValueError) as e:
            raise get_error_factory().from_encode_error(e, message, server_name=self.name) from e

        try:
            response = await self._client.post(self.endpoint, content=body, headers=headers)
        except httpx.HTTPError as e:
            raise create_error(
                "CONNECTION_FAILED",
                reason=str(e) or type(e).__name__,
                server_name=self.name,
                method=method,
            ) from e

        reply = self._post_reply(response)
        request_id = message.get("id")
        if reply is not None and request_id is not None:
            if self._answers(reply, request_id):
                self.correlator.settle(request_id, reply)
                return
            # Some other request's reply; ours still arrives later
            self.correlator.dispatch(reply)

        if response.status_code >= 400:
            raise create_error(
                "HTTP_STATUS",
                status_code=response.status_code,
                reason=response.reason_phrase,
                server_name=self.name,
                method=method,
            )

    @staticmethod
    def _answers(reply: dict[str, Any], request_id: int) -> bool:
        """Whether a POST body reply belongs to the request that was POSTed.

        An error with a null id answers the request it came back on; the
        server could not read an id from it.
        """
        reply_id = reply.get("id")
        if reply_id is None:
            return JSONRPCMessage.is_error(reply)
        return not isinstance(reply_id, bool) and reply_id == request_id

    def _post_reply(self, response: httpx.Response) -> dict[str, Any] | None:
        """The JSON-RPC reply carried in a POST body, if there is one."""
        text = response.text.strip()
        if not text:
            return None
        try:
            body = json.loads(text)
        except ValueError:
            if self._logger:
                self._logger.debug(
                    f"Non-JSON POST response ({response.status_code}), waiting for SSE",
                    body=text[:100],
                )
            return None

        if not isinstance(body, dict) or not JSONRPCMessage.is_response(body):
            return None
        if "jsonrpc" not in body and not JSONRPCMessage.is_error(body):
            return None
        return body

    async def close(self) -> None:
        """Stop reading and close the stream. Safe to call more than once."""
        self._closed = True

        reader, self._reader = self._reader, None
        if reader is not None:
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)

        response, self._response = self._response, None
        if response is not None:
            await response.aclose()

        if self._owns_client and self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

        self.correlator.fail_all("transport closed")
