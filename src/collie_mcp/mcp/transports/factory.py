"""Transport selection by config shape."""

from collie_mcp.config.models import ClientSettings, ServerConfig
from collie_mcp.errors import create_error
from collie_mcp.logging import ServerLogger
from collie_mcp.types import TransportKind

from .base import Transport
from .sse import SSETransport
from .stdio import StdioTransport


def create_transport(
    name: str,
    config: ServerConfig,
    settings: ClientSettings | None = None,
    logger: ServerLogger | None = None,
) -> Transport:
    """Create the transport a server config selects.

    Args:
        name: Server name
        config: Server configuration
        settings: Client timing settings
        logger: Optional server-scoped logger

    Returns:
        An unopened Transport

    Raises:
        ConfigError: If the config lacks the field its transport requires
    """
    validation = config.validate()
    if not validation.valid:
        raise create_error(
            "CONFIG_INVALID",
            reason=validation.errors[0].message,
            server_name=name,
        )

    if config.transport_kind == TransportKind.SSE:
        return SSETransport(name, config, settings, logger)
    return StdioTransport(name, config, settings, logger)
