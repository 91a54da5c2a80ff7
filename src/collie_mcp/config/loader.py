"""Collie client configuration loader."""

import os
import re
import typing
from dataclasses import fields
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from collie_mcp.errors import create_error
from collie_mcp.logging import CollieLogger
from collie_mcp.types import LogFormat, LogLevel, ValidationIssue, ValidationResult

from .models import ClientSettings, CollieConfig

CONFIG_PATH_ENV = "COLLIE_CONFIG_PATH"
LOCAL_CONFIG_NAME = "collie-config.yaml"

_TIMING_KEYS = {
    f.name for f in fields(ClientSettings) if f.type is float
}


def resolve_env_vars(value: str) -> str:
    """Resolve environment variable references in string.

    Supports:
    - ${VAR} - Required, error if not set
    - ${VAR:-default} - With default value
    - ${VAR:?error message} - Required with custom error

    Args:
        value: String with potential env var references

    Returns:
        String with env vars resolved

    Raises:
        ConfigError: If required var not set
    """
    # Pattern: ${VAR}, ${VAR:-default}, ${VAR:?error}
    pattern = r"\$\{([^}:]+)(?::([?-])([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        operator = match.group(2)  # '-' or '?' or None
        operand = match.group(3)  # default value or error message

        env_value = os.environ.get(var_name)

        if env_value is not None:
            return env_value

        if operator == "-":
            return operand or ""
        elif operator == "?":
            error_msg = operand or f"Required environment variable {var_name} not set"
            raise create_error("CONFIG_INVALID", reason=error_msg)
        else:
            raise create_error(
                "CONFIG_INVALID",
                reason=f"Required environment variable {var_name} not set",
            )

    return re.sub(pattern, replacer, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve env vars in data structure."""
    if isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    else:
        return data


class ConfigLoader:
    """Load and validate the Collie client configuration."""

    def __init__(self, logger: CollieLogger | None = None):
        """Initialize config loader.

        Args:
            logger: Optional CollieLogger instance
        """
        self._config: CollieConfig | None = None
        self._config_path: Path | None = None
        self._logger = logger

    def _log(self, level: LogLevel, message: str) -> None:
        if self._logger:
            self._logger._log(level, "config", message)

    def load(self, path: str | Path | None = None, use_defaults: bool = True) -> CollieConfig:
        """Load configuration from file.

        Resolution order if path not specified:
        1. COLLIE_CONFIG_PATH environment variable
        2. ./collie-config.yaml
        3. ~/.collie/config.yaml
        4. If use_defaults=True and no file found, use default configuration

        Args:
            path: Optional path to config file
            use_defaults: If True, use default config when no file found

        Returns:
            Loaded CollieConfig instance

        Raises:
            ConfigError: If file not found (when use_defaults=False) or invalid
        """
        if path is None:
            path = self._resolve_config_path()

        config_path = Path(path)

        if not config_path.exists():
            if use_defaults:
                self._log(LogLevel.INFO, "No config file found, using default configuration")
                return self.load_defaults()
            raise create_error(
                "CONFIG_INVALID",
                reason=f"Configuration file not found: {config_path}",
            )

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise create_error(
                "CONFIG_INVALID",
                reason=f"Invalid YAML in config file: {e}",
            ) from e

        if not isinstance(data, dict):
            raise create_error(
                "CONFIG_INVALID",
                reason=f"Config file must contain a mapping: {config_path}",
            )

        data = _resolve_env_vars_recursive(data)

        return self.load_from_dict(data, config_path)

    def load_defaults(self) -> CollieConfig:
        """Load default configuration without a file."""
        return self.load_from_dict({})

    def load_from_dict(self, data: dict[str, Any], config_path: Path | None = None) -> CollieConfig:
        """Load configuration from dictionary.

        Args:
            data: Configuration dictionary
            config_path: Optional path to config file (for tracking)

        Returns:
            Loaded CollieConfig instance

        Raises:
            ConfigError: If configuration is invalid
        """
        validation = self.validate(data)
        if not validation.valid:
            error_messages = [f"- {issue.message}" for issue in validation.errors]
            raise create_error(
                "CONFIG_INVALID",
                reason="Configuration validation failed:\n" + "\n".join(error_messages),
            )

        for warning in validation.warnings:
            self._log(LogLevel.WARN, warning.message)

        try:
            config = self._dict_to_config(data)
        except (TypeError, ValueError) as e:
            raise create_error(
                "CONFIG_INVALID",
                reason=f"Failed to parse configuration: {e}",
            ) from e

        self._config = config
        self._config_path = config_path

        self._log(LogLevel.INFO, "Configuration loaded successfully")

        return config

    def validate(self, data: dict[str, Any]) -> ValidationResult:
        """Validate config data without loading.

        Args:
            data: Configuration dictionary

        Returns:
            ValidationResult with errors and warnings
        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        for key in data:
            if key not in ("client", "logging"):
                warnings.append(
                    ValidationIssue(
                        path=key,
                        message=f"Unknown configuration key: {key}",
                        severity="warning",
                    )
                )

        client = data.get("client")
        if client is not None:
            if not isinstance(client, dict):
                errors.append(
                    ValidationIssue(path="client", message="client must be a dictionary")
                )
            else:
                for timing_key in sorted(_TIMING_KEYS & client.keys()):
                    value = client[timing_key]
                    if (
                        isinstance(value, bool)
                        or not isinstance(value, int | float)
                        or value <= 0
                    ):
                        errors.append(
                            ValidationIssue(
                                path=f"client.{timing_key}",
                                message=f"{timing_key} must be a positive number",
                            )
                        )

        logging_section = data.get("logging")
        if logging_section is not None:
            if not isinstance(logging_section, dict):
                errors.append(
                    ValidationIssue(path="logging", message="logging must be a dictionary")
                )
            else:
                level = logging_section.get("level")
                if level is not None and str(level).upper() not in LogLevel.__members__:
                    errors.append(
                        ValidationIssue(
                            path="logging.level",
                            message=f"Unknown log level: {level}",
                        )
                    )
                log_format = logging_section.get("format")
                if log_format is not None and log_format not in {f.value for f in LogFormat}:
                    errors.append(
                        ValidationIssue(
                            path="logging.format",
                            message=f"Unknown log format: {log_format}",
                        )
                    )

        return ValidationResult(valid=True, errors=errors, warnings=warnings)

    def get(self) -> CollieConfig:
        """Get current configuration.

        Raises:
            ConfigError: If configuration not loaded
        """
        if self._config is None:
            raise create_error("CONFIG_INVALID", reason="Configuration not loaded")
        return self._config

    def _resolve_config_path(self) -> Path:
        """Resolve config file path using resolution order."""
        env_path = os.environ.get(CONFIG_PATH_ENV)
        if env_path:
            return Path(env_path)

        local_path = Path(LOCAL_CONFIG_NAME)
        if local_path.exists():
            return local_path

        home_path = Path.home() / ".collie" / "config.yaml"
        if home_path.exists():
            return home_path

        # Not found - use local path as default
        return local_path

    def _dict_to_config(self, data: dict[str, Any]) -> CollieConfig:
        """Convert dictionary to CollieConfig."""
        kwargs: dict[str, Any] = {}

        for field in fields(CollieConfig):
            if field.name in data:
                kwargs[field.name] = self._convert_field(field.type, data[field.name])

        return CollieConfig(**kwargs)

    def _convert_field(self, field_type: Any, value: Any) -> Any:
        """Convert field value to appropriate type.

        Args:
            field_type: Expected field type
            value: Value to convert

        Returns:
            Converted value
        """
        if value is None:
            return None

        origin = typing.get_origin(field_type)

        if origin is dict:
            if not isinstance(value, dict):
                return value
            args = typing.get_args(field_type)
            if args and len(args) == 2:
                value_type = args[1]
                return {k: self._convert_field(value_type, v) for k, v in value.items()}
            return value

        if hasattr(field_type, "__dataclass_fields__"):
            if isinstance(value, dict):
                kwargs = {}
                for f in fields(field_type):
                    if f.name in value:
                        kwargs[f.name] = self._convert_field(f.type, value[f.name])
                return field_type(**kwargs)
            return value

        if isinstance(field_type, type) and issubclass(field_type, Enum):
            if isinstance(value, str):
                try:
                    return field_type(value)
                except ValueError:
                    return field_type(value.upper())
            return value

        if field_type is float and isinstance(value, int):
            return float(value)

        return value


# Convenience singleton
_default_loader: ConfigLoader | None = None


def get_config_loader() -> ConfigLoader:
    """Get default config loader singleton."""
    global _default_loader  # noqa: PLW0603
    if _default_loader is None:
        _default_loader = ConfigLoader()
    return _default_loader


def load_config(path: str | Path | None = None) -> CollieConfig:
    """Convenience function to load config.

    Args:
        path: Optional path to config file

    Returns:
        Loaded CollieConfig instance
    """
    return get_config_loader().load(path)
