"""Per-workspace MCP server list (.mcp.json)."""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from collie_mcp.errors import create_error

from .models import ServerConfig

WORKSPACE_CONFIG_FILENAME = ".mcp.json"


@dataclass
class WorkspaceConfig:
    """Parsed contents of a workspace's .mcp.json."""

    servers: dict[str, ServerConfig] = field(default_factory=dict)
    # Top-level keys other than mcpServers, kept so a write does not drop them
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorkspaceConfig":
        """Build from the parsed JSON document.

        Raises:
            ConfigError: If `mcpServers` or one of its entries is malformed
        """
        if not isinstance(data, Mapping):
            raise create_error("CONFIG_INVALID", reason=".mcp.json must contain an object")

        raw_servers = data.get("mcpServers") or {}
        if not isinstance(raw_servers, Mapping):
            raise create_error("CONFIG_INVALID", reason="'mcpServers' must be an object")

        servers = {
            name: ServerConfig.from_dict(entry, name=name) for name, entry in raw_servers.items()
        }
        extra = {k: v for k, v in data.items() if k != "mcpServers"}
        return cls(servers=servers, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the .mcp.json shape."""
        data = dict(self.extra)
        data["mcpServers"] = {name: config.to_dict() for name, config in self.servers.items()}
        return data


def workspace_config_path(workspace: str | Path) -> Path:
    """Path of the .mcp.json file for a workspace directory."""
    return Path(workspace) / WORKSPACE_CONFIG_FILENAME


def read_workspace_config(workspace: str | Path) -> WorkspaceConfig | None:
    """Read a workspace's .mcp.json.

    Args:
        workspace: Workspace directory

    Returns:
        WorkspaceConfig, or None if the workspace has no .mcp.json

    Raises:
        ConfigError: If the file is not valid JSON or has a malformed entry
    """
    path = workspace_config_path(workspace)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise create_error("CONFIG_INVALID", reason=f"Invalid JSON in {path}: {e}") from e

    return WorkspaceConfig.from_dict(data)


def write_workspace_config(
    workspace: str | Path,
    config: WorkspaceConfig | Mapping[str, Any],
) -> Path:
    """Write a workspace's .mcp.json (2-space indented).

    Args:
        workspace: Workspace directory
        config: WorkspaceConfig or an already-shaped document

    Returns:
        Path written
    """
    data = config.to_dict() if isinstance(config, WorkspaceConfig) else dict(config)
    path = workspace_config_path(workspace)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path
