"""
Pytest configuration and shared fixtures for Collie MCP tests.
"""

import io
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from collie_mcp.config import ClientSettings, ServerConfig  # noqa: E402
from collie_mcp.logging import CollieLogger, LogConfig  # noqa: E402
from collie_mcp.types import LogLevel  # noqa: E402

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def tests_dir() -> Path:
    """Return the tests directory."""
    return Path(__file__).parent


@pytest.fixture(scope="session")
def fixtures_dir(tests_dir: Path) -> Path:
    """Return the fixtures directory."""
    return tests_dir / "fixtures"


@pytest.fixture(scope="session")
def echo_server_script(fixtures_dir: Path) -> Path:
    """Return path to the scripted stdio MCP server."""
    return fixtures_dir / "echo_mcp_server.py"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def fast_settings() -> ClientSettings:
    """Client settings with short grace periods and timeouts."""
    return ClientSettings(
        stdio_request_timeout=5.0,
        sse_request_timeout=5.0,
        spawn_grace_period=0.05,
        sse_connect_timeout=2.0,
        endpoint_grace_period=0.05,
        shutdown_timeout=2.0,
    )


@pytest.fixture
def echo_server_config(echo_server_script: Path) -> ServerConfig:
    """Stdio config that runs the echo server with this interpreter."""
    return ServerConfig(command=sys.executable, args=(str(echo_server_script),))


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture
def log_output() -> io.StringIO:
    """Buffer that captures logger output."""
    return io.StringIO()


@pytest.fixture
def logger(log_output: io.StringIO) -> CollieLogger:
    """Debug-level logger writing to log_output."""
    return CollieLogger(LogConfig(level=LogLevel.DEBUG, output=log_output))


# =============================================================================
# Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "property: Property-based tests")
    config.addinivalue_line("markers", "mcp_client: MCP client tests against a real subprocess")
