"""Launch command resolution for stdio MCP servers.

Package runners such as npx and uvx are shell shims on Windows and cannot be
spawned directly. The stdio transport passes every command through a
resolver before spawning; the default one rewrites those commands on Windows
and passes everything through unchanged elsewhere. Tests inject their own.
"""

import ntpath
import os
import shutil
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from collie_mcp.types import LogStream

# npx flags that are not the package name; the value-taking ones skip the next arg
_NPX_FLAGS = ("-y", "--yes")
_NPX_VALUE_FLAGS = ("-p", "--package")


@dataclass
class LaunchCommand:
    """A concrete command ready to spawn."""

    command: str
    args: list[str] = field(default_factory=list)
    shell: bool = False  # Run through the platform shell
    # Diagnostics produced while resolving, forwarded as server log lines
    notes: list[tuple[LogStream, str]] = field(default_factory=list)

    def describe(self) -> str:
        """Command line as shown in logs."""
        return " ".join([self.command, *self.args])


LaunchResolver = Callable[[str, Sequence[str], Mapping[str, str]], LaunchCommand]


def split_npx_args(args: Sequence[str]) -> tuple[str | None, list[str]]:
    """Split npx arguments into the package and the package's own arguments.

    Args:
        args: Arguments following `npx`, e.g. ["-y", "@scope/server", "--port", "1"]

    Returns:
        (package, package_args); package is None if only flags were given
    """
    package = None
    package_args: list[str] = []
    skip_next = False

    for arg in args:
        if skip_next:
            skip_next = False
            continue
        if package is None and arg in _NPX_FLAGS:
            continue
        if package is None and arg in _NPX_VALUE_FLAGS:
            skip_next = True
            continue
        if package is None:
            package = arg
        else:
            package_args.append(arg)

    return package, package_args


def resolve_launch_command(
    command: str,
    args: Sequence[str],
    env: Mapping[str, str],
    platform: str = sys.platform,
    exists: Callable[[str], bool] = os.path.exists,
    which: Callable[[str], str | None] = shutil.which,
) -> LaunchCommand:
    """Default launch resolver.

    On Windows:
    - `npx <pkg>` runs `node %APPDATA%\\npm\\node_modules\\<pkg>\\dist\\index.js`
      when the package is installed globally, otherwise `npx.cmd` via the shell.
    - `uv` / `uvx` are located on PATH so the .exe/.cmd shim is used.

    Args:
        command: Configured command
        args: Configured arguments
        env: Environment the process will run with
        platform: sys.platform value to resolve for
        exists: Path existence check
        which: PATH lookup

    Returns:
        LaunchCommand
    """
    if platform != "win32":
        return LaunchCommand(command=command, args=list(args))

    if command == "npx":
        package, package_args = split_npx_args(args)
        appdata = env.get("APPDATA")
        if package and appdata:
            entry = ntpath.join(appdata, "npm", "node_modules", package, "dist", "index.js")
            if exists(entry):
                return LaunchCommand(
                    command="node",
                    args=[entry, *package_args],
                    notes=[(LogStream.INFO, f"Using global install: {entry}")],
                )
        return LaunchCommand(
            command="npx.cmd",
            args=list(args),
            shell=True,
            notes=[(LogStream.INFO, "Package not found globally, using npx.cmd")],
        )

    if command in ("uv", "uvx"):
        found = which(command)
        if found:
            return LaunchCommand(
                command=found,
                args=list(args),
                notes=[(LogStream.INFO, f"Found {command} at: {found}")],
            )
        return LaunchCommand(
            command=command,
            args=list(args),
            shell=True,
            notes=[
                (
                    LogStream.ERROR,
                    f"{command} not found on system. Install it with: pip install uv",
                )
            ],
        )

    return LaunchCommand(command=command, args=list(args), shell=True)
