"""Unit tests for RequestCorrelator."""

import asyncio
from typing import Any

import pytest

from collie_mcp.errors import ConnectionFailedError, RequestTimeoutError, RPCError
from collie_mcp.mcp.correlator import RequestCorrelator, next_request_id


class RecordingTransmit:
    """Transmit callable that records every message sent."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.sent_event = asyncio.Event()

    async def __call__(self, message: dict[str, Any]) -> None:
        self.sent.append(message)
        self.sent_event.set()

    async def wait_for_count(self, count: int) -> None:
        while len(self.sent) < count:
            self.sent_event.clear()
            await self.sent_event.wait()


@pytest.fixture
def transmit() -> RecordingTransmit:
    return RecordingTransmit()


@pytest.fixture
def correlator(transmit: RecordingTransmit) -> RequestCorrelator:
    return RequestCorrelator(transmit, timeout=5.0, server_name="test")


class TestNextRequestId:
    """Tests for the process-wide id counter."""

    def test_ids_strictly_increase(self):
        """Test every id is larger than the one before."""
        ids = [next_request_id() for _ in range(50)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 50


class TestRequest:
    """Tests for request()."""

    @pytest.mark.asyncio
    async def test_sends_jsonrpc_request(self, correlator, transmit):
        """Test the wire message shape."""
        task = asyncio.create_task(correlator.request("tools/list", {}))
        await transmit.wait_for_count(1)

        message = transmit.sent[0]
        assert message["jsonrpc"] == "2.0"
        assert message["method"] == "tools/list"
        assert message["params"] == {}
        assert isinstance(message["id"], int)

        correlator.dispatch({"jsonrpc": "2.0", "id": message["id"], "result": {"tools": []}})
        assert await task == {"tools": []}

    @pytest.mark.asyncio
    async def test_resolves_only_matching_request(self, correlator, transmit):
        """Test a reply settles its own request and no other."""
        first = asyncio.create_task(correlator.request("a"))
        second = asyncio.create_task(correlator.request("b"))
        await transmit.wait_for_count(2)

        second_id = transmit.sent[1]["id"]
        assert correlator.dispatch({"jsonrpc": "2.0", "id": second_id, "result": "B"})

        assert await second == "B"
        assert not first.done()
        assert correlator.pending_count == 1

        correlator.dispatch({"jsonrpc": "2.0", "id": transmit.sent[0]["id"], "result": "A"})
        assert await first == "A"
        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_error_reply_raises_rpc_error(self, correlator, transmit):
        """Test an error object rejects with its message."""
        task = asyncio.create_task(correlator.request("tools/call"))
        await transmit.wait_for_count(1)

        correlator.dispatch(
            {
                "jsonrpc": "2.0",
                "id": transmit.sent[0]["id"],
                "error": {"code": -32000, "message": "tool failed"},
            }
        )

        with pytest.raises(RPCError) as exc_info:
            await task
        assert exc_info.value.message == "tool failed"
        assert exc_info.value.detail == "JSON-RPC error -32000"
        assert exc_info.value.method == "tools/call"

    @pytest.mark.asyncio
    async def test_empty_error_message_is_kept(self, correlator, transmit):
        """Test an empty error message is not replaced."""
        task = asyncio.create_task(correlator.request("x"))
        await transmit.wait_for_count(1)

        correlator.dispatch(
            {"jsonrpc": "2.0", "id": transmit.sent[0]["id"], "error": {"code": 1, "message": ""}}
        )

        with pytest.raises(RPCError) as exc_info:
            await task
        assert exc_info.value.message == ""

    @pytest.mark.asyncio
    async def test_timeout_raises_and_clears_entry(self, transmit):
        """Test a request with no reply times out naming its method."""
        correlator = RequestCorrelator(transmit, timeout=0.05)

        with pytest.raises(RequestTimeoutError) as exc_info:
            await correlator.request("tools/call")

        assert "tools/call" in str(exc_info.value)
        assert exc_info.value.retryable is True
        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_timeout_does_not_affect_other_requests(self, transmit):
        """Test one request timing out leaves a concurrent one intact."""
        correlator = RequestCorrelator(transmit, timeout=5.0)

        doomed = asyncio.create_task(correlator.request("hang", timeout=0.05))
        healthy = asyncio.create_task(correlator.request("echo"))
        await transmit.wait_for_count(2)

        with pytest.raises(RequestTimeoutError):
            await doomed

        correlator.dispatch({"jsonrpc": "2.0", "id": transmit.sent[1]["id"], "result": "ok"})
        assert await healthy == "ok"

    @pytest.mark.asyncio
    async def test_settled_request_ignores_deadline(self, transmit):
        """Test a request answered in time is not rejected later."""
        correlator = RequestCorrelator(transmit, timeout=0.2)
        task = asyncio.create_task(correlator.request("fast"))
        await transmit.wait_for_count(1)

        correlator.dispatch({"jsonrpc": "2.0", "id": transmit.sent[0]["id"], "result": 1})
        assert await task == 1

        await asyncio.sleep(0.3)
        assert task.exception() is None

    @pytest.mark.asyncio
    async def test_transmit_failure_propagates(self):
        """Test a send failure rejects the request and clears its entry."""

        async def broken(message):
            raise ConnectionResetError("pipe closed")

        correlator = RequestCorrelator(broken, timeout=1.0)
        with pytest.raises(ConnectionResetError):
            await correlator.request("x")
        assert correlator.pending_count == 0


class TestDispatch:
    """Tests for dispatch()."""

    @pytest.mark.asyncio
    async def test_unknown_id_is_noop(self, correlator, transmit):
        """Test an unmatched reply is dropped without touching others."""
        task = asyncio.create_task(correlator.request("x"))
        await transmit.wait_for_count(1)

        assert correlator.dispatch({"jsonrpc": "2.0", "id": 10**9, "result": None}) is False
        assert not task.done()
        assert correlator.pending_count == 1

        correlator.dispatch({"jsonrpc": "2.0", "id": transmit.sent[0]["id"], "result": None})
        await task

    def test_notification_is_ignored(self, correlator):
        """Test a message without an id is dropped."""
        assert correlator.dispatch({"jsonrpc": "2.0", "method": "notifications/progress"}) is False

    def test_server_request_is_ignored(self, correlator):
        """Test a server-initiated request is not treated as a reply."""
        assert correlator.dispatch({"jsonrpc": "2.0", "id": 1, "method": "ping"}) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", [[1], {}, {"n": 1}, "1", 1.0, True])
    async def test_non_integer_id_is_dropped(self, correlator, transmit, bad_id):
        """Test replies whose id is not an int never raise and never settle."""
        task = asyncio.create_task(correlator.request("ping"))
        await transmit.wait_for_count(1)
        request_id = transmit.sent[0]["id"]
        if isinstance(bad_id, list):
            bad_id = [request_id]

        assert correlator.dispatch({"jsonrpc": "2.0", "id": bad_id, "result": {}}) is False
        assert not task.done()

        correlator.dispatch({"jsonrpc": "2.0", "id": request_id, "result": {"ok": True}})
        assert await task == {"ok": True}


class TestSettle:
    """Tests for settle()."""

    @pytest.mark.asyncio
    async def test_first_reply_wins(self, correlator, transmit):
        """Test a second reply for the same id is ignored."""
        task = asyncio.create_task(correlator.request("x"))
        await transmit.wait_for_count(1)
        request_id = transmit.sent[0]["id"]

        assert correlator.settle(request_id, {"jsonrpc": "2.0", "id": request_id, "result": "post"})
        assert not correlator.dispatch({"jsonrpc": "2.0", "id": request_id, "result": "sse"})
        assert await task == "post"

    def test_unknown_id(self, correlator):
        """Test settling an unknown id returns False."""
        assert correlator.settle(12345, {"jsonrpc": "2.0", "id": 12345, "result": 1}) is False


class TestNotify:
    """Tests for notify()."""

    @pytest.mark.asyncio
    async def test_no_id_and_no_pending_entry(self, correlator, transmit):
        """Test notifications carry no id."""
        await correlator.notify("notifications/initialized")

        assert transmit.sent == [{"jsonrpc": "2.0", "method": "notifications/initialized"}]
        assert correlator.pending_count == 0


class TestFailAll:
    """Tests for fail_all()."""

    @pytest.mark.asyncio
    async def test_rejects_outstanding_requests(self, correlator, transmit):
        """Test every pending request is rejected with a transport error."""
        tasks = [asyncio.create_task(correlator.request(f"m{i}")) for i in range(3)]
        await transmit.wait_for_count(3)

        assert correlator.fail_all("server closed its stdout") == 3

        for task in tasks:
            with pytest.raises(ConnectionFailedError) as exc_info:
                await task
            assert "server closed its stdout" in str(exc_info.value)
        assert correlator.pending_count == 0

    def test_nothing_pending(self, correlator):
        """Test fail_all with no requests."""
        assert correlator.fail_all("gone") == 0
