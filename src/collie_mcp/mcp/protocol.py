"""JSON-RPC protocol helpers for MCP communication."""

import json
from typing import Any

JSONRPC_VERSION = "2.0"


class JSONRPCMessage:
    """JSON-RPC 2.0 message builder and parser."""

    @staticmethod
    def request(method: str, params: dict[str, Any] | None = None, id: int = 1) -> dict[str, Any]:
        """Build a JSON-RPC request.

        Args:
            method: Method name (e.g., "initialize", "tools/list", "tools/call")
            params: Optional parameters
            id: Request ID

        Returns:
            JSON-RPC request dict
        """
        msg: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "id": id,
            "method": method,
        }
        if params is not None:
            msg["params"] = params
        return msg

    @staticmethod
    def notification(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Build a JSON-RPC notification (no response expected).

        Args:
            method: Method name
            params: Optional parameters

        Returns:
            JSON-RPC notification dict
        """
        msg: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "method": method,
        }
        if params is not None:
            msg["params"] = params
        return msg

    @staticmethod
    def success_response(id: int, result: Any) -> dict[str, Any]:
        """Build a JSON-RPC success response."""
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": id,
            "result": result,
        }

    @staticmethod
    def error_response(id: int, code: int, message: str, data: Any = None) -> dict[str, Any]:
        """Build a JSON-RPC error response.

        Args:
            id: Request ID
            code: Error code
            message: Error message
            data: Optional error data

        Returns:
            JSON-RPC error response dict
        """
        error: dict[str, Any] = {
            "code": code,
            "message": message,
        }
        if data is not None:
            error["data"] = data

        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": id,
            "error": error,
        }

    @staticmethod
    def encode(message: dict[str, Any]) -> bytes:
        """Encode a message as one newline-terminated line.

        Args:
            message: JSON-RPC message dict

        Returns:
            UTF-8 bytes ending in a single newline
        """
        return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")

    @staticmethod
    def parse(message: str | bytes) -> dict[str, Any]:
        """Parse a JSON-RPC message.

        Args:
            message: JSON string or bytes

        Returns:
            Parsed message dict

        Raises:
            ValueError: If message is not valid JSON or not an object
        """
        if isinstance(message, bytes):
            message = message.decode("utf-8")
        parsed = json.loads(message)
        if not isinstance(parsed, dict):
            raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
        return parsed

    @staticmethod
    def is_response(message: dict[str, Any]) -> bool:
        """Check if message is a response (has 'result' or 'error')."""
        return "result" in message or "error" in message

    @staticmethod
    def is_error(message: dict[str, Any]) -> bool:
        """Check if message is an error response."""
        return "error" in message and message["error"] is not None

    @staticmethod
    def get_result(message: dict[str, Any]) -> Any:
        """Extract result from response message (None when absent)."""
        return message.get("result")

    @staticmethod
    def get_error(message: dict[str, Any]) -> dict[str, Any]:
        """Extract the error object, normalised to {code, message, data?}.

        Servers occasionally send a bare string instead of an error object.

        Args:
            message: Parsed error response

        Returns:
            Error dict with at least code and message
        """
        error = message.get("error")
        if isinstance(error, dict):
            text = error.get("message")
            return {
                "code": error.get("code", -32603),
                "message": str(text) if text is not None else json.dumps(error),
                **({"data": error["data"]} if "data" in error else {}),
            }
        return {"code": -32603, "message": str(error)}
