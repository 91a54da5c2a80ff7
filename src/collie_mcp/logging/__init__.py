"""Collie logging - component-scoped colored or JSON logging."""

from .colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from .logger import MANAGER_COMPONENT, CollieLogger, LogConfig, ServerLogger

__all__ = [
    # Logger classes
    "CollieLogger",
    "ServerLogger",
    "LogConfig",
    "MANAGER_COMPONENT",
    # Colors
    "RESET",
    "GREEN",
    "RED",
    "YELLOW",
    "ORANGE",
    "LIGHT_BLUE",
    "CYAN",
    "MAGENTA",
]
