"""Unit tests for CollieLogger and ServerLogger."""

import json
from io import StringIO

import pytest

from collie_mcp.errors import create_error
from collie_mcp.logging import MANAGER_COMPONENT, CollieLogger, LogConfig
from collie_mcp.types import LogFormat, LogLevel, LogStream


def json_logger(**overrides) -> tuple[CollieLogger, StringIO]:
    output = StringIO()
    config = LogConfig(format=LogFormat.JSON, level=LogLevel.DEBUG, output=output)
    for key, value in overrides.items():
        setattr(config, key, value)
    return CollieLogger(config), output


def entries(output: StringIO) -> list[dict]:
    return [json.loads(line) for line in output.getvalue().splitlines()]


class TestCollieLogger:
    """Tests for CollieLogger."""

    def test_json_entry(self):
        """Test JSON entries carry level, component, message and context."""
        logger, output = json_logger()
        logger._log(LogLevel.INFO, MANAGER_COMPONENT, "Connecting", {"servers": 2})

        [entry] = entries(output)
        assert entry["level"] == "INFO"
        assert entry["component"] == "mcp.manager"
        assert entry["message"] == "Connecting"
        assert entry["servers"] == 2
        assert entry["timestamp"].endswith("Z")

    def test_level_filter(self):
        """Test messages below the configured level are dropped."""
        logger, output = json_logger(level=LogLevel.WARN)
        logger._log(LogLevel.INFO, MANAGER_COMPONENT, "quiet")
        logger._log(LogLevel.ERROR, MANAGER_COMPONENT, "loud")

        assert [e["message"] for e in entries(output)] == ["loud"]

    def test_component_filter(self):
        """Test disabled components are silenced."""
        logger, output = json_logger(components={"mcp.github": False})
        logger.server("github").debug("hidden")
        logger.server("fetch").debug("shown")

        assert [e["message"] for e in entries(output)] == ["shown"]

    def test_colored_output(self):
        """Test colored output tags the component and truncates context."""
        output = StringIO()
        logger = CollieLogger(LogConfig(output=output, truncate_at=10))
        logger._log(LogLevel.INFO, MANAGER_COMPONENT, "hello", {"key": "x" * 50})

        text = output.getvalue()
        assert "[MCP.MANAGER]" in text
        assert "hello" in text
        assert "..." in text
        assert "x" * 50 not in text

    def test_configure(self):
        """Test configure() swaps the config."""
        logger, _ = json_logger()
        output = StringIO()
        logger.configure(LogConfig(format=LogFormat.JSON, output=output))

        logger._log(LogLevel.INFO, "mcp.x", "after")
        assert entries(output)[0]["message"] == "after"


class TestServerLogger:
    """Tests for ServerLogger."""

    @pytest.mark.parametrize(
        "stream,level",
        [
            (LogStream.STDOUT, "DEBUG"),
            (LogStream.STDERR, "INFO"),
            (LogStream.INFO, "INFO"),
            (LogStream.ERROR, "ERROR"),
        ],
    )
    def test_stream_levels(self, stream, level):
        """Test each log stream maps to a log level."""
        logger, output = json_logger()
        logger.server("github").stream(stream, "line")

        [entry] = entries(output)
        assert entry["level"] == level
        assert entry["component"] == "mcp.github"
        assert entry["server_name"] == "github"
        assert entry["stream"] == stream.value
        assert entry["message"].endswith("line")

    def test_lifecycle_events(self):
        """Test connected, failed and disconnected entries."""
        logger, output = json_logger()
        server = logger.server("fetch")

        server.connected("stdio", 3)
        server.failed(create_error("PROCESS_SPAWN_FAILED", command="uvx", reason="not found"))
        server.disconnected("requested")

        connected, failed, disconnected = entries(output)
        assert connected["event"] == "server_connected"
        assert connected["tool_count"] == 3
        assert failed["level"] == "ERROR"
        assert failed["error"] == "Failed to start process 'uvx': not found"
        assert failed["error_type"] == "ProcessSpawnError"
        assert disconnected["message"] == "Disconnected (requested)"
