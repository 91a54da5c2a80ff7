"""Test mocks for collie-mcp.

Provides mock implementations for testing:
- FakeTransport: In-memory MCP server behind the Transport interface
- FakeTransportFactory: transport_factory that records what it built
"""

from .fake_transport import FakeTransport, FakeTransportFactory

__all__ = ["FakeTransport", "FakeTransportFactory"]
