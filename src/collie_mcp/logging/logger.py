"""Collie Logger - component-scoped colored or JSON logging for MCP connections."""

import json
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TextIO

from collie_mcp.logging.colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from collie_mcp.types import LogFormat, LogLevel, LogStream

MANAGER_COMPONENT = "mcp.manager"


@dataclass
class LogConfig:
    """Logger configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    show_context: bool = True
    truncate_at: int = 200
    # Component name -> enabled. Unlisted components are enabled.
    components: dict[str, bool] = field(default_factory=dict)
    output: TextIO = field(default=sys.stderr)


class CollieLogger:
    """Main logger facade. Creates server-scoped loggers."""

    def __init__(self, config: LogConfig | None = None):
        """Initialize logger with configuration.

        Args:
            config: Logger configuration (defaults to LogConfig())
        """
        self.config = config or LogConfig()
        self._level_order = {
            LogLevel.DEBUG: 0,
            LogLevel.INFO: 1,
            LogLevel.WARN: 2,
            LogLevel.ERROR: 3,
        }

    def server(self, server_name: str) -> "ServerLogger":
        """Get a logger scoped to one MCP server.

        Args:
            server_name: Server name as configured in .mcp.json

        Returns:
            ServerLogger instance
        """
        return ServerLogger(self, server_name)

    def configure(self, config: LogConfig) -> None:
        """Update configuration.

        Args:
            config: New logger configuration
        """
        self.config = config

    def _should_log(self, level: LogLevel) -> bool:
        return self._level_order.get(level, 0) >= self._level_order.get(self.config.level, 1)

    def _log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Internal logging method.

        Args:
            level: Log level
            component: Component name (mcp.manager, mcp.<server>)
            message: Log message
            context: Additional context data
        """
        if not self._should_log(level):
            return

        if not self.config.components.get(component, True):
            return

        if self.config.format == LogFormat.JSON:
            self._log_json(level, component, message, context)
        else:
            self._log_colored(level, component, message, context)

    def _log_json(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": level.value,
            "component": component,
            "message": message,
        }
        if context:
            log_entry.update(context)

        print(json.dumps(log_entry, default=str), file=self.config.output)

    def _log_colored(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        level_colors = {
            LogLevel.DEBUG: LIGHT_BLUE,
            LogLevel.INFO: CYAN,
            LogLevel.WARN: YELLOW,
            LogLevel.ERROR: RED,
        }

        color = level_colors.get(level, RESET)
        component_color = MAGENTA if component == MANAGER_COMPONENT else GREEN

        # Format: [COMPONENT] message
        output = f"{component_color}[{component.upper()}]{RESET} {color}{message}{RESET}"

        if context and self.config.show_context:
            context_str = str(context)
            if len(context_str) > self.config.truncate_at:
                context_str = context_str[: self.config.truncate_at] + "..."
            output += f" {LIGHT_BLUE}{context_str}{RESET}"

        print(output, file=self.config.output)


class ServerLogger:
    """Logger for one MCP server's transport and lifecycle events."""

    # Server stderr is where MCP servers write their own logs, so it is
    # informational rather than a warning.
    _STREAM_LEVELS = {
        LogStream.STDOUT: LogLevel.DEBUG,
        LogStream.STDERR: LogLevel.INFO,
        LogStream.INFO: LogLevel.INFO,
        LogStream.ERROR: LogLevel.ERROR,
    }

    def __init__(self, parent: CollieLogger, server_name: str):
        """Initialize server logger.

        Args:
            parent: Parent CollieLogger instance
            server_name: Server name
        """
        self.parent = parent
        self.server_name = server_name
        self.component = f"mcp.{server_name}"

    def _emit(self, level: LogLevel, message: str, **context: Any) -> None:
        context["server_name"] = self.server_name
        self.parent._log(level, self.component, message, context)

    def stream(self, stream: LogStream, message: str) -> None:
        """Log a line that was also published as a `log` event.

        Args:
            stream: Where the line came from
            message: Line text
        """
        level = self._STREAM_LEVELS.get(stream, LogLevel.INFO)
        if stream == LogStream.STDERR:
            message = f"{ORANGE}stderr:{RESET} {message}"
        self._emit(level, message, stream=stream.value, event="server_log")

    def connected(self, transport: str, tool_count: int) -> None:
        """Log a completed handshake."""
        self._emit(
            LogLevel.INFO,
            f"Connected with {tool_count} tools ✓",
            event="server_connected",
            transport=transport,
            tool_count=tool_count,
        )

    def failed(self, error: Exception) -> None:
        """Log a failed connect attempt."""
        self._emit(
            LogLevel.ERROR,
            f"Connection failed: {error}",
            event="server_failed",
            error=str(error),
            error_type=type(error).__name__,
        )

    def disconnected(self, reason: str) -> None:
        """Log a transition to disconnected."""
        self._emit(LogLevel.INFO, f"Disconnected ({reason})", event="server_disconnected")

    def debug(self, message: str, **context: Any) -> None:
        """Log a debug message."""
        self._emit(LogLevel.DEBUG, message, **context)

    def warn(self, message: str, **context: Any) -> None:
        """Log a warning."""
        self._emit(LogLevel.WARN, message, **context)
