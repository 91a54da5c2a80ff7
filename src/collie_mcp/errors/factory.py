"""Error factory - builds CollieErrors from exceptions, JSON-RPC error objects and bad requests."""

from typing import Any

from .errors import CollieError
from .matchers import ErrorMatcherChain
from .registry import ErrorRegistry


class ErrorFactory:
    """Creates CollieErrors with server, tool and request context attached."""

    def __init__(
        self,
        registry: ErrorRegistry | None = None,
        matcher_chain: ErrorMatcherChain | None = None,
    ):
        """Initialize error factory.

        Args:
            registry: Error registry (defaults to new ErrorRegistry())
            matcher_chain: Matcher chain (defaults to new ErrorMatcherChain())
        """
        self.registry = registry or ErrorRegistry()
        self.matcher_chain = matcher_chain or ErrorMatcherChain()

    def from_exception(
        self,
        error: Exception,
        server_name: str | None = None,
        tool_name: str | None = None,
        method: str | None = None,
        request_id: int | None = None,
    ) -> CollieError:
        """Convert any exception to CollieError.

        Call-site context replaces the placeholders matchers fill in when the
        exception itself cannot say which request failed.

        Args:
            error: Exception to convert
            server_name: Optional server name
            tool_name: Optional tool name
            method: Optional JSON-RPC method
            request_id: Optional id of the request in flight

        Returns:
            CollieError instance
        """
        if isinstance(error, CollieError):
            return error.with_context(
                server_name=server_name,
                tool_name=tool_name,
                method=method,
            )

        match_result = self.matcher_chain.match(error)

        context = match_result.context.copy()
        call_site = {
            "server_name": server_name,
            "tool_name": tool_name,
            "method": method,
            "request_id": request_id,
        }
        context.update({key: value for key, value in call_site.items() if value is not None})

        collie_error = self.registry.create(
            code=match_result.error_code,
            context=context,
        )

        if match_result.retryable is not None:
            collie_error.retryable = match_result.retryable

        return collie_error

    def from_rpc_error(
        self,
        error: dict[str, Any],
        method: str,
        server_name: str | None = None,
        request_id: int | None = None,
    ) -> CollieError:
        """Build an RPCError from a JSON-RPC error object.

        Args:
            error: Normalised error object with `code` and `message`
            method: Method of the request the error answers
            server_name: Optional server name
            request_id: Optional id of the request the error answers

        Returns:
            RPCError instance
        """
        return self.create(
            "RPC_ERROR",
            reason=error.get("message", "Unknown error"),
            rpc_code=error.get("code", -32603),
            method=method,
            request_id=request_id,
            server_name=server_name,
        )

    def from_encode_error(
        self,
        error: Exception,
        message: dict[str, Any],
        server_name: str | None = None,
    ) -> CollieError:
        """Build an error for an outgoing message that cannot be serialized.

        Args:
            error: TypeError or ValueError raised by the JSON encoder
            message: The JSON-RPC message that failed to encode
            server_name: Optional server name

        Returns:
            RequestEncodeError instance
        """
        method = message.get("method") or "unknown"
        params = message.get("params")
        tool_name = None
        if method == "tools/call" and isinstance(params, dict):
            tool_name = params.get("name")
        return self.create(
            "REQUEST_ENCODE_FAILED",
            reason=str(error) or type(error).__name__,
            method=method,
            request_id=message.get("id"),
            server_name=server_name,
            tool_name=tool_name,
        )

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> CollieError:
        """Create CollieError directly from code.

        Args:
            code: Error code
            context: Context variables for template interpolation
            **kwargs: Additional context variables

        Returns:
            CollieError instance
        """
        merged_context = dict(context or {})
        merged_context.update(kwargs)

        return self.registry.create(code=code, context=merged_context)


# Convenience singleton
_default_factory: ErrorFactory | None = None


def get_error_factory() -> ErrorFactory:
    """Get default error factory singleton."""
    global _default_factory  # noqa: PLW0603
    if _default_factory is None:
        _default_factory = ErrorFactory()
    return _default_factory


def create_error(code: str, **context: Any) -> CollieError:
    """Convenience function to create error.

    Args:
        code: Error code
        **context: Context variables for template interpolation

    Returns:
        CollieError instance
    """
    return get_error_factory().create(code, context)
