"""Collie configuration data models."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from collie_mcp.errors import create_error
from collie_mcp.logging import LogConfig
from collie_mcp.types import (
    LogFormat,
    LogLevel,
    TransportKind,
    ValidationIssue,
    ValidationResult,
)

# Values of ServerConfig.type that select the HTTP + SSE transport
HTTP_TRANSPORT_TYPES = ("sse", "http")


@dataclass(frozen=True)
class ServerConfig:
    """Definition of one MCP server, as found under `mcpServers` in .mcp.json."""

    command: str | None = None  # For stdio: executable to spawn
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)  # Merged over os.environ
    type: str | None = None  # "stdio" | "sse" | "http"
    url: str | None = None  # For sse/http: stream URL
    headers: dict[str, str] = field(default_factory=dict)
    disabled: bool = False

    @property
    def transport_kind(self) -> TransportKind:
        """Transport inferred from the config shape."""
        if self.url or self.type in HTTP_TRANSPORT_TYPES:
            return TransportKind.SSE
        return TransportKind.STDIO

    def copy(self) -> "ServerConfig":
        """Return a copy that shares no mutable state with this one."""
        return ServerConfig(
            command=self.command,
            args=tuple(self.args),
            env=dict(self.env),
            type=self.type,
            url=self.url,
            headers=dict(self.headers),
            disabled=self.disabled,
        )

    def validate(self, path: str = "") -> ValidationResult:
        """Check that the fields required by the selected transport are present.

        Args:
            path: Prefix for issue paths (e.g. "mcpServers.github")

        Returns:
            ValidationResult
        """
        prefix = f"{path}." if path else ""
        errors: list[ValidationIssue] = []

        if self.transport_kind == TransportKind.SSE:
            if not self.url:
                errors.append(
                    ValidationIssue(
                        path=f"{prefix}url",
                        message="URL is required for SSE/HTTP servers",
                    )
                )
        elif not self.command:
            errors.append(
                ValidationIssue(
                    path=f"{prefix}command",
                    message="Command is required for stdio servers",
                )
            )

        return ValidationResult(valid=True, errors=errors)

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the .mcp.json shape, omitting empty fields."""
        data: dict[str, Any] = {}
        if self.command is not None:
            data["command"] = self.command
        if self.args:
            data["args"] = list(self.args)
        if self.env:
            data["env"] = dict(self.env)
        if self.type is not None:
            data["type"] = self.type
        if self.url is not None:
            data["url"] = self.url
        if self.headers:
            data["headers"] = dict(self.headers)
        if self.disabled:
            data["disabled"] = True
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], name: str = "") -> "ServerConfig":
        """Build a ServerConfig from parsed JSON.

        Unknown keys are ignored.

        Args:
            data: One entry of the `mcpServers` mapping
            name: Server name, used in error messages

        Returns:
            ServerConfig

        Raises:
            ConfigError: If a field has the wrong type
        """
        label = f"server '{name}'" if name else "server"
        if not isinstance(data, Mapping):
            raise create_error("CONFIG_INVALID", reason=f"Config for {label} must be an object")

        def _str(key: str) -> str | None:
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise create_error(
                    "CONFIG_INVALID", reason=f"'{key}' for {label} must be a string"
                )
            return value

        def _str_map(key: str) -> dict[str, str]:
            value = data.get(key) or {}
            if not isinstance(value, Mapping) or not all(
                isinstance(k, str) and isinstance(v, str) for k, v in value.items()
            ):
                raise create_error(
                    "CONFIG_INVALID",
                    reason=f"'{key}' for {label} must map strings to strings",
                )
            return dict(value)

        args = data.get("args") or []
        if not isinstance(args, list | tuple) or not all(isinstance(a, str) for a in args):
            raise create_error(
                "CONFIG_INVALID", reason=f"'args' for {label} must be a list of strings"
            )

        server_type = _str("type")
        if server_type is not None and server_type not in ("stdio", *HTTP_TRANSPORT_TYPES):
            raise create_error(
                "CONFIG_INVALID",
                reason=f"Unknown transport type '{server_type}' for {label}",
            )

        return cls(
            command=_str("command"),
            args=tuple(args),
            env=_str_map("env"),
            type=server_type,
            url=_str("url"),
            headers=_str_map("headers"),
            disabled=bool(data.get("disabled", False)),
        )


@dataclass
class ClientSettings:
    """Client identity and transport timing.

    The grace periods are heuristics: they give a launcher wrapper time to
    fail and an SSE server time to announce its message endpoint.
    """

    client_name: str = "Collie"
    client_version: str = "0.1.0"
    protocol_version: str = "2024-11-05"
    stdio_request_timeout: float = 10.0
    sse_request_timeout: float = 15.0
    spawn_grace_period: float = 0.3
    sse_connect_timeout: float = 10.0
    endpoint_grace_period: float = 0.5
    shutdown_timeout: float = 5.0

    def client_info(self) -> dict[str, str]:
        """The `clientInfo` object sent with `initialize`."""
        return {"name": self.client_name, "version": self.client_version}


@dataclass
class LoggingConfig:
    """Logging section of the client config file."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    show_context: bool = True
    truncate_at: int = 200
    components: dict[str, bool] = field(default_factory=dict)

    def to_log_config(self) -> LogConfig:
        """Build the runtime LogConfig for CollieLogger."""
        return LogConfig(
            level=self.level,
            format=self.format,
            show_context=self.show_context,
            truncate_at=self.truncate_at,
            components=dict(self.components),
        )


@dataclass
class CollieConfig:
    """Root client configuration."""

    client: ClientSettings = field(default_factory=ClientSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
