"""Error registry for creating errors from templates."""

from typing import Any

from .errors import ERROR_CLASSES, CollieError, ErrorCategory, ErrorTemplate


class ErrorRegistry:
    """Registry of error templates. Creates errors from templates + context."""

    def __init__(self) -> None:
        """Initialize error registry with built-in templates."""
        self._templates: dict[str, ErrorTemplate] = {}
        self._load_builtin_templates()

    def get_template(self, code: str) -> ErrorTemplate | None:
        """Get template by error code.

        Args:
            code: Error code to look up

        Returns:
            ErrorTemplate if found, None otherwise
        """
        return self._templates.get(code)

    def list_codes(self) -> list[str]:
        """List all registered error codes."""
        return list(self._templates.keys())

    def register(self, template: ErrorTemplate) -> None:
        """Register or replace a template."""
        self._templates[template.code] = template

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: CollieError | None = None,
    ) -> CollieError:
        """Create error instance from template + context.

        Args:
            code: Error code
            context: Context variables for template interpolation
            cause: Optional cause error

        Returns:
            Instance of the exception class bound to the code

        Raises:
            ValueError: If error code not found
        """
        template = self.get_template(code)
        if not template:
            msg = f"Unknown error code: {code}"
            raise ValueError(msg)

        context = context or {}

        message = self._interpolate(template.message_template, context)
        detail = context.get("detail") or self._interpolate(template.detail_template, context)
        suggestion = self._interpolate(template.suggestion_template, context)

        if message is None:
            message = f"Error {code}"

        error_class = ERROR_CLASSES.get(code, CollieError)
        return error_class(
            code=template.code,
            category=template.category,
            message=message,
            detail=detail,
            suggestion=suggestion,
            retryable=template.default_retryable,
            server_name=context.get("server_name"),
            tool_name=context.get("tool_name"),
            method=context.get("method"),
            cause=cause,
        )

    def _interpolate(
        self,
        template: str | None,
        context: dict[str, Any],
    ) -> str | None:
        """Safe string interpolation.

        Args:
            template: Template string with {var} placeholders
            context: Context variables

        Returns:
            Interpolated string or None if template is None
        """
        if template is None:
            return None

        try:
            return template.format(**context)
        except (KeyError, IndexError):
            # Missing context variable - return template as-is
            return template

    def _load_builtin_templates(self) -> None:
        """Load hardcoded built-in templates."""
        # CONFIG errors
        self._templates["CONFIG_INVALID"] = ErrorTemplate(
            code="CONFIG_INVALID",
            category=ErrorCategory.CONFIG,
            message_template="{reason}",
            detail_template="The configuration could not be used as given",
            suggestion_template="Check the server entry in .mcp.json or the client config file",
        )

        # TRANSPORT errors
        self._templates["PROCESS_SPAWN_FAILED"] = ErrorTemplate(
            code="PROCESS_SPAWN_FAILED",
            category=ErrorCategory.TRANSPORT,
            message_template="Failed to start process '{command}': {reason}",
            detail_template="The MCP server process could not be spawned or exited immediately",
            suggestion_template="Check that the command is installed and on PATH",
        )

        self._templates["CONNECT_TIMEOUT"] = ErrorTemplate(
            code="CONNECT_TIMEOUT",
            category=ErrorCategory.TRANSPORT,
            message_template="Connection timeout after {timeout_seconds}s: {url}",
            detail_template="The SSE endpoint did not send response headers in time",
            suggestion_template="Check that the MCP server is running and reachable",
            default_retryable=True,
        )

        self._templates["HTTP_STATUS"] = ErrorTemplate(
            code="HTTP_STATUS",
            category=ErrorCategory.TRANSPORT,
            message_template="HTTP {status_code}: {reason}",
            detail_template="The MCP server answered with an unexpected HTTP status",
            suggestion_template="Check the server URL and any required headers",
        )

        self._templates["CONNECTION_FAILED"] = ErrorTemplate(
            code="CONNECTION_FAILED",
            category=ErrorCategory.TRANSPORT,
            message_template="Connection failed: {reason}",
            detail_template="Could not exchange data with the MCP server",
            suggestion_template="Check that the MCP server is running and accessible",
            default_retryable=True,
        )

        self._templates["TRANSPORT_CLOSED"] = ErrorTemplate(
            code="TRANSPORT_CLOSED",
            category=ErrorCategory.TRANSPORT,
            message_template="Connection to MCP server '{server_name}' closed: {reason}",
            detail_template="The transport went away while requests were outstanding",
            suggestion_template="Reconnect the server and retry",
            default_retryable=True,
        )

        # PROTOCOL errors
        self._templates["HANDSHAKE_FAILED"] = ErrorTemplate(
            code="HANDSHAKE_FAILED",
            category=ErrorCategory.PROTOCOL,
            message_template="{reason}",
            detail_template="The {method} round trip with '{server_name}' did not complete",
            suggestion_template="Check the server logs for startup errors",
            default_retryable=True,
        )

        self._templates["REQUEST_TIMEOUT"] = ErrorTemplate(
            code="REQUEST_TIMEOUT",
            category=ErrorCategory.PROTOCOL,
            message_template="Request timeout for {method}",
            detail_template="No response to request {request_id} within {timeout_seconds}s",
            suggestion_template="Check whether the server is stuck or overloaded",
            default_retryable=True,
        )

        self._templates["PROTOCOL_PARSE"] = ErrorTemplate(
            code="PROTOCOL_PARSE",
            category=ErrorCategory.PROTOCOL,
            message_template="Malformed JSON-RPC message: {reason}",
            detail_template="Offending input: {raw}",
        )

        self._templates["RPC_ERROR"] = ErrorTemplate(
            code="RPC_ERROR",
            category=ErrorCategory.PROTOCOL,
            message_template="{reason}",
            detail_template="JSON-RPC error {rpc_code}",
        )

        self._templates["REQUEST_ENCODE_FAILED"] = ErrorTemplate(
            code="REQUEST_ENCODE_FAILED",
            category=ErrorCategory.PROTOCOL,
            message_template="Cannot encode {method} request: {reason}",
            detail_template="Request {request_id} has parameters that are not JSON-serializable",
            suggestion_template="Pass only JSON types (dict, list, str, number, bool, None) as arguments",
        )

        # TOOL errors
        self._templates["SERVER_NOT_CONNECTED"] = ErrorTemplate(
            code="SERVER_NOT_CONNECTED",
            category=ErrorCategory.TOOL,
            message_template="Server {server_name} not connected",
            detail_template="There is no live connection for this server name",
            suggestion_template="Connect the server before calling its tools",
        )

        # SYSTEM errors
        self._templates["INTERNAL_ERROR"] = ErrorTemplate(
            code="INTERNAL_ERROR",
            category=ErrorCategory.SYSTEM,
            message_template="{reason}",
            detail_template="Unexpected {error_type}",
            suggestion_template="Check the logs and report this issue",
        )
