"""Unit tests for MCPConnection."""

import pytest

from collie_mcp.config import ClientSettings, ServerConfig
from collie_mcp.errors import RPCError, ServerNotConnectedError, create_error
from collie_mcp.mcp.connection import MCPConnection
from collie_mcp.types import ConnectionStatus, LogStream, TransportKind
from tests.mocks import FakeTransportFactory

STDIO = ServerConfig(command="fake-server")


@pytest.fixture
def factory() -> FakeTransportFactory:
    return FakeTransportFactory()


def make_connection(factory: FakeTransportFactory, config: ServerConfig = STDIO) -> MCPConnection:
    return MCPConnection("fake", config, ClientSettings(), transport_factory=factory)


class TestConnect:
    """Tests for connect()."""

    @pytest.mark.asyncio
    async def test_successful_handshake(self, factory):
        """Test a full handshake leaves the connection connected with tools."""
        conn = await make_connection(factory).connect()

        assert conn.status == ConnectionStatus.CONNECTED
        assert conn.error is None
        assert [tool.name for tool in conn.tools] == ["echo"]
        assert conn.server_info["serverInfo"] == {"name": "fake"}
        assert factory.last("fake").methods == [
            "initialize",
            "notifications/initialized",
            "tools/list",
        ]

    @pytest.mark.asyncio
    async def test_initialize_params(self, factory):
        """Test initialize carries protocol version, capabilities and client info."""
        settings = ClientSettings(client_version="9.9.9")
        conn = MCPConnection("fake", STDIO, settings, transport_factory=factory)
        await conn.connect()

        params = factory.last("fake").sent[0]["params"]
        assert params == {
            "protocolVersion": "2024-11-05",
            "capabilities": {},
            "clientInfo": {"name": "Collie", "version": "9.9.9"},
        }

    @pytest.mark.asyncio
    async def test_open_failure_never_raises(self, factory):
        """Test a transport failure becomes status ERROR with a message."""
        factory.options["open_error"] = create_error(
            "PROCESS_SPAWN_FAILED", command="fake-server", reason="No such file or directory"
        )
        conn = await make_connection(factory).connect()

        assert conn.status == ConnectionStatus.ERROR
        assert conn.error == "Failed to start process 'fake-server': No such file or directory"
        assert conn.last_error.code == "PROCESS_SPAWN_FAILED"
        assert conn.tools == []
        assert conn.transport is None

    @pytest.mark.asyncio
    async def test_foreign_exception_converted(self, factory):
        """Test a non-Collie exception is converted through the error factory."""
        factory.options["open_error"] = FileNotFoundError(2, "No such file or directory", "npx")
        conn = await make_connection(factory).connect()

        assert conn.status == ConnectionStatus.ERROR
        assert conn.last_error.code == "PROCESS_SPAWN_FAILED"
        assert "npx" in conn.error

    @pytest.mark.asyncio
    async def test_handshake_error(self, factory):
        """Test a rejected initialize is reported as a handshake failure."""
        factory.options["fail_method"] = "initialize"
        conn = await make_connection(factory).connect()

        assert conn.status == ConnectionStatus.ERROR
        assert conn.last_error.code == "HANDSHAKE_FAILED"
        assert conn.error == "initialize failed: initialize refused"
        assert factory.last("fake").close_count == 1

    @pytest.mark.asyncio
    async def test_handshake_timeout(self, factory):
        """Test an unanswered tools/list fails the connect."""
        factory.options.update(silent_method="tools/list", request_timeout=0.05)
        conn = await make_connection(factory).connect()

        assert conn.status == ConnectionStatus.ERROR
        assert "tools/list failed: Request timeout for tools/list" == conn.error

    @pytest.mark.asyncio
    async def test_missing_command_is_config_error(self):
        """Test an incomplete config fails with the real transport factory."""
        conn = await MCPConnection("bad", ServerConfig()).connect()

        assert conn.status == ConnectionStatus.ERROR
        assert conn.error == "Command is required for stdio servers"
        assert conn.last_error.code == "CONFIG_INVALID"

    @pytest.mark.asyncio
    async def test_missing_url_is_config_error(self):
        """Test an SSE config without a url fails to connect."""
        conn = await MCPConnection("bad", ServerConfig(type="sse")).connect()

        assert conn.status == ConnectionStatus.ERROR
        assert conn.error == "URL is required for SSE/HTTP servers"

    @pytest.mark.asyncio
    async def test_malformed_tools_skipped(self, factory):
        """Test tool entries without a name are dropped."""
        factory.options["tools"] = [
            {"name": "ok", "inputSchema": {"type": "object", "properties": {}}},
            {"description": "nameless"},
            "not a dict",
        ]
        conn = await make_connection(factory).connect()

        assert [tool.name for tool in conn.tools] == ["ok"]

    @pytest.mark.asyncio
    async def test_config_is_copied(self, factory):
        """Test later changes to the caller's env do not leak in."""
        env = {"TOKEN": "a"}
        conn = make_connection(factory, ServerConfig(command="x", env=env))
        env["TOKEN"] = "b"

        assert conn.config.env == {"TOKEN": "a"}

    @pytest.mark.asyncio
    async def test_log_lines_forwarded(self, factory):
        """Test transport log lines reach on_log tagged with the server name."""
        conn = make_connection(factory)
        lines = []
        conn.on_log = lambda name, stream, message: lines.append((name, stream, message))
        await conn.connect()

        assert ("fake", LogStream.INFO, "fake transport open") in lines


class TestTransportLoss:
    """Tests for the peer going away."""

    @pytest.mark.asyncio
    async def test_exit_after_handshake_disconnects(self, factory):
        """Test a dropped transport moves a connected server to DISCONNECTED."""
        conn = make_connection(factory)
        events = []
        conn.on_disconnected = lambda name, reason: events.append((name, reason))
        await conn.connect()

        factory.last("fake").drop("process exited with code 1")

        assert conn.status == ConnectionStatus.DISCONNECTED
        assert conn.tools == []
        assert conn.transport is None
        assert events == [("fake", "process exited with code 1")]

        await conn.disconnect()
        assert factory.last("fake").close_count >= 1

    @pytest.mark.asyncio
    async def test_exit_before_handshake_ignored(self, factory):
        """Test an early exit does not change status on its own."""
        factory.options["silent_method"] = "initialize"
        conn = make_connection(factory)
        events = []
        conn.on_disconnected = lambda name, reason: events.append(name)

        transport = factory("fake", conn.config, ClientSettings())
        transport.on_closed = conn._handle_closed
        transport.drop()

        assert conn.status == ConnectionStatus.DISCONNECTED
        assert events == []


class TestCallTool:
    """Tests for call_tool()."""

    @pytest.mark.asyncio
    async def test_call_returns_raw_result(self, factory):
        """Test the tools/call result is returned as sent."""
        conn = await make_connection(factory).connect()
        result = await conn.call_tool("echo", {"text": "hi"})

        assert result["content"] == [{"type": "text", "text": "echo ok"}]
        assert factory.last("fake").sent[-1]["params"] == {
            "name": "echo",
            "arguments": {"text": "hi"},
        }

    @pytest.mark.asyncio
    async def test_call_when_not_connected(self, factory):
        """Test calls on an unconnected server raise ServerNotConnectedError."""
        conn = make_connection(factory)

        with pytest.raises(ServerNotConnectedError) as exc_info:
            await conn.call_tool("echo", {})
        assert str(exc_info.value) == "Server fake not connected"

    @pytest.mark.asyncio
    async def test_call_after_drop(self, factory):
        """Test calls fail once the transport is gone."""
        conn = await make_connection(factory).connect()
        factory.last("fake").drop()

        with pytest.raises(ServerNotConnectedError):
            await conn.call_tool("echo", {})

    @pytest.mark.asyncio
    async def test_rpc_error_gets_tool_name(self, factory):
        """Test a tool error propagates with the tool name attached."""
        factory.options["fail_method"] = "tools/call"
        conn = await make_connection(factory).connect()

        with pytest.raises(RPCError) as exc_info:
            await conn.call_tool("echo", {})
        assert exc_info.value.tool_name == "echo"


class TestStatus:
    """Tests for get_status(), refresh and disconnect."""

    @pytest.mark.asyncio
    async def test_get_status(self, factory):
        """Test the status snapshot."""
        conn = await make_connection(factory, ServerConfig(url="http://x/sse")).connect()
        status = conn.get_status()

        assert status.name == "fake"
        assert status.status == ConnectionStatus.CONNECTED
        assert status.transport == TransportKind.SSE
        assert status.tools == ["echo"]
        assert status.last_connected is not None

    @pytest.mark.asyncio
    async def test_refresh_tools(self, factory):
        """Test the tool list is replaced wholesale."""
        conn = await make_connection(factory).connect()
        factory.last("fake").tools = [{"name": "a"}, {"name": "b"}]

        tools = await conn.refresh_tools()

        assert [tool.name for tool in tools] == ["a", "b"]
        assert conn.get_tool("b") is not None
        assert conn.get_tool("echo") is None

    @pytest.mark.asyncio
    async def test_disconnect(self, factory):
        """Test disconnect closes the transport and reports it once."""
        conn = await make_connection(factory).connect()
        events = []
        conn.on_disconnected = lambda name, reason: events.append(reason)

        await conn.disconnect()
        await conn.disconnect()

        assert conn.status == ConnectionStatus.DISCONNECTED
        assert conn.tools == []
        assert factory.last("fake").close_count == 1
        assert events == ["requested"]

    @pytest.mark.asyncio
    async def test_error_cleared_on_successful_reconnect(self, factory):
        """Test a later successful connect clears the previous error."""
        factory.options["fail_method"] = "tools/list"
        conn = await make_connection(factory).connect()
        assert conn.status == ConnectionStatus.ERROR

        factory.options["fail_method"] = None
        await conn.connect()

        assert conn.status == ConnectionStatus.CONNECTED
        assert conn.error is None
