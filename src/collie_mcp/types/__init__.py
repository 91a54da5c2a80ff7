"""Shared types for Collie MCP.

Import from here rather than submodules:
    from collie_mcp.types import ConnectionStatus, LogLevel, TransportKind
"""

from .enums import ConnectionStatus, LogFormat, LogLevel, LogStream, TransportKind
from .validation import ValidationIssue, ValidationResult

__all__ = [
    # Enums
    "LogLevel",
    "LogFormat",
    "LogStream",
    "TransportKind",
    "ConnectionStatus",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
