"""Collie error handling - structured errors with context."""

from .errors import (
    CollieError,
    ConfigError,
    ConnectionFailedError,
    ConnectTimeoutError,
    ErrorCategory,
    ErrorMatcher,
    ErrorTemplate,
    HandshakeError,
    HttpStatusError,
    MatchResult,
    ProcessSpawnError,
    ProtocolParseError,
    RequestEncodeError,
    RequestTimeoutError,
    RPCError,
    ServerNotConnectedError,
)
from .factory import ErrorFactory, create_error, get_error_factory
from .matchers import ErrorMatcherChain
from .registry import ErrorRegistry

__all__ = [
    # Core error types
    "CollieError",
    "ErrorCategory",
    "ErrorTemplate",
    "MatchResult",
    # Specific errors
    "ConfigError",
    "ProcessSpawnError",
    "ConnectTimeoutError",
    "HttpStatusError",
    "ConnectionFailedError",
    "HandshakeError",
    "RequestTimeoutError",
    "ServerNotConnectedError",
    "ProtocolParseError",
    "RPCError",
    "RequestEncodeError",
    # Registry and factory
    "ErrorRegistry",
    "ErrorFactory",
    "ErrorMatcherChain",
    "ErrorMatcher",
    # Convenience functions
    "get_error_factory",
    "create_error",
]
