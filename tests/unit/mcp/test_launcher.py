"""Unit tests for launch command resolution."""

import ntpath

import pytest

from collie_mcp.mcp.launcher import resolve_launch_command, split_npx_args
from collie_mcp.types import LogStream

APPDATA = r"C:\Users\dev\AppData\Roaming"


class TestSplitNpxArgs:
    """Tests for split_npx_args()."""

    @pytest.mark.parametrize(
        "args,expected",
        [
            (["-y", "@modelcontextprotocol/server-github"], ("@modelcontextprotocol/server-github", [])),
            (["--yes", "pkg", "--port", "3000"], ("pkg", ["--port", "3000"])),
            (["-p", "extra", "pkg", "a"], ("pkg", ["a"])),
            (["pkg", "-y"], ("pkg", ["-y"])),
            (["-y"], (None, [])),
        ],
    )
    def test_split(self, args, expected):
        """Test flags before the package are dropped."""
        assert split_npx_args(args) == expected


class TestResolveLaunchCommand:
    """Tests for resolve_launch_command()."""

    def test_passthrough_on_posix(self):
        """Test commands are unchanged off Windows."""
        launch = resolve_launch_command("npx", ["-y", "pkg"], {}, platform="linux")

        assert launch.command == "npx"
        assert launch.args == ["-y", "pkg"]
        assert launch.shell is False
        assert launch.notes == []

    def test_npx_global_install_on_windows(self):
        """Test npx is rewritten to node when the package is installed globally."""
        entry = ntpath.join(APPDATA, "npm", "node_modules", "pkg", "dist", "index.js")

        launch = resolve_launch_command(
            "npx",
            ["-y", "pkg", "--flag"],
            {"APPDATA": APPDATA},
            platform="win32",
            exists=lambda path: path == entry,
        )

        assert launch.command == "node"
        assert launch.args == [entry, "--flag"]
        assert launch.shell is False
        assert launch.notes == [(LogStream.INFO, f"Using global install: {entry}")]

    def test_npx_falls_back_to_cmd_shim(self):
        """Test npx.cmd through the shell when no global install exists."""
        launch = resolve_launch_command(
            "npx",
            ["-y", "pkg"],
            {"APPDATA": APPDATA},
            platform="win32",
            exists=lambda path: False,
        )

        assert launch.command == "npx.cmd"
        assert launch.args == ["-y", "pkg"]
        assert launch.shell is True

    def test_npx_without_appdata(self):
        """Test a missing APPDATA goes straight to npx.cmd."""
        launch = resolve_launch_command("npx", ["pkg"], {}, platform="win32")
        assert launch.command == "npx.cmd"

    def test_uvx_found_on_path(self):
        """Test uvx resolves to the located executable."""
        found = r"C:\tools\uvx.exe"
        launch = resolve_launch_command(
            "uvx", ["mcp-server-fetch"], {}, platform="win32", which=lambda name: found
        )

        assert launch.command == found
        assert launch.args == ["mcp-server-fetch"]
        assert launch.shell is False

    def test_uv_not_found(self):
        """Test a missing uv produces an error note and runs through the shell."""
        launch = resolve_launch_command("uv", ["run", "x"], {}, platform="win32", which=lambda name: None)

        assert launch.command == "uv"
        assert launch.shell is True
        assert launch.notes[0][0] == LogStream.ERROR
        assert "pip install uv" in launch.notes[0][1]

    def test_other_commands_use_shell_on_windows(self):
        """Test plain commands run through the shell on Windows."""
        launch = resolve_launch_command("python", ["server.py"], {}, platform="win32")

        assert launch.command == "python"
        assert launch.shell is True
        assert launch.describe() == "python server.py"
