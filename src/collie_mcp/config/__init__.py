"""Collie configuration - client settings and workspace server lists."""

from .loader import (
    ConfigLoader,
    get_config_loader,
    load_config,
    resolve_env_vars,
)
from .models import (
    ClientSettings,
    CollieConfig,
    LoggingConfig,
    ServerConfig,
)
from .workspace import (
    WORKSPACE_CONFIG_FILENAME,
    WorkspaceConfig,
    read_workspace_config,
    workspace_config_path,
    write_workspace_config,
)

__all__ = [
    # Config models
    "CollieConfig",
    "ClientSettings",
    "LoggingConfig",
    "ServerConfig",
    # Loader
    "ConfigLoader",
    "get_config_loader",
    "load_config",
    "resolve_env_vars",
    # Workspace
    "WORKSPACE_CONFIG_FILENAME",
    "WorkspaceConfig",
    "read_workspace_config",
    "write_workspace_config",
    "workspace_config_path",
]
