"""Stdio transport - an MCP server as a child process speaking line-delimited JSON-RPC."""

import asyncio
import os
import subprocess
from typing import Any

from collie_mcp.config.models import ClientSettings, ServerConfig
from collie_mcp.errors import create_error, get_error_factory
from collie_mcp.logging import ServerLogger
from collie_mcp.types import LogStream, TransportKind

from ..launcher import LaunchCommand, LaunchResolver, resolve_launch_command
from ..protocol import JSONRPCMessage
from .base import Transport

_READ_CHUNK = 64 * 1024
# Longest stdout or stderr line kept; servers occasionally dump huge lines
_STREAM_LIMIT = 1024 * 1024


class LineFramer:
    """Splits a byte stream into newline-terminated lines.

    Bytes after the last newline are kept until the next feed completes them.
    Only the new chunk is scanned for newlines. A line that grows past
    `max_line` bytes is discarded up to its terminating newline and counted
    in `dropped`.
    """

    def __init__(self, max_line: int = _STREAM_LIMIT) -> None:
        self._parts: list[bytes] = []
        self._size = 0
        self._overflow = False
        self.max_line = max_line
        self.dropped = 0

    @property
    def pending(self) -> bytes:
        """Bytes received after the last complete line."""
        return b"".join(self._parts)

    def feed(self, data: bytes | str) -> list[bytes]:
        """Add data and return the lines it completed.

        Args:
            data: Next chunk from the stream

        Returns:
            Complete lines without their terminators; blank lines are skipped
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        *segments, tail = data.split(b"\n")

        lines = []
        for segment in segments:
            if self._overflow:
                self.dropped += 1
                self._overflow = False
            else:
                self._parts.append(segment)
                line = b"".join(self._parts).rstrip(b"\r")
                if len(line) > self.max_line:
                    self.dropped += 1
                elif line.strip():
                    lines.append(line)
            self._parts = []
            self._size = 0

        if tail and not self._overflow:
            self._parts.append(tail)
            self._size += len(tail)
            if self._size > self.max_line:
                self._parts = []
                self._size = 0
                self._overflow = True
        return lines


class StdioTransport(Transport):
    """Child process transport.

    Outgoing messages are written to stdin one per line. Replies are read from
    stdout and dispatched to the correlator; stderr lines become `stderr` log
    lines.
    """

    kind = TransportKind.STDIO

    def __init__(
        self,
        name: str,
        config: ServerConfig,
        settings: ClientSettings | None = None,
        logger: ServerLogger | None = None,
        resolver: LaunchResolver = resolve_launch_command,
    ):
        """Initialize stdio transport.

        Args:
            name: Server name
            config: Server configuration (must have a command)
            settings: Client timing settings
            logger: Optional server-scoped logger
            resolver: Launch command resolver
        """
        settings = settings or ClientSettings()
        super().__init__(name, config, settings, settings.stdio_request_timeout, logger)
        self._resolver = resolver
        self._process: asyncio.subprocess.Process | None = None
        self._framer = LineFramer()
        self._tasks: list[asyncio.Task[None]] = []
        self._stdout_eof = asyncio.Event()

    @property
    def process(self) -> asyncio.subprocess.Process | None:
        """The child process, or None when not running."""
        return self._process

    @property
    def pid(self) -> int | None:
        """PID of the child process."""
        return self._process.pid if self._process else None

    @property
    def is_open(self) -> bool:
        """True while the process is running with a writable stdin."""
        process = self._process
        return (
            process is not None
            and process.returncode is None
            and process.stdin is not None
            and not process.stdin.is_closing()
        )

    async def open(self) -> None:
        """Spawn the server process and start reading its output.

        Raises:
            ProcessSpawnError: If the process cannot be started or exits
                within the spawn grace period
        """
        command = self.config.command or ""
        env = {**os.environ, **self.config.env}
        launch = self._resolver(command, self.config.args, env)
        for stream, note in launch.notes:
            self._emit_log(stream, note)
        self._emit_log(LogStream.INFO, f"Spawning: {launch.describe()}")

        try:
            process = await self._spawn(launch, env)
        except OSError as e:
            self._emit_log(LogStream.ERROR, f"Process error: {e}")
            raise create_error(
                "PROCESS_SPAWN_FAILED",
                command=command,
                reason=e.strerror or str(e),
                server_name=self.name,
            ) from e

        self._process = process
        self._tasks = [
            asyncio.create_task(self._read_stdout(process)),
            asyncio.create_task(self._read_stderr(process)),
            asyncio.create_task(self._watch_exit(process)),
        ]

        # Give launcher wrappers a chance to fail before the handshake starts
        await asyncio.sleep(self.settings.spawn_grace_period)

        if process.returncode is not None and self._stdout_eof.is_set():
            code = process.returncode
            await self.close()
            raise create_error(
                "PROCESS_SPAWN_FAILED",
                command=command,
                reason=f"process exited with code {code}",
                server_name=self.name,
            )

        self._emit_log(LogStream.INFO, f"Process started with PID {process.pid}, initializing...")

    async def _spawn(self, launch: LaunchCommand, env: dict[str, str]) -> asyncio.subprocess.Process:
        pipes: dict[str, Any] = {
            "stdin": asyncio.subprocess.PIPE,
            "stdout": asyncio.subprocess.PIPE,
            "stderr": asyncio.subprocess.PIPE,
            "env": env,
            "limit": _STREAM_LIMIT,
        }
        if launch.shell:
            cmdline = subprocess.list2cmdline([launch.command, *launch.args])
            return await asyncio.create_subprocess_shell(cmdline, **pipes)
        return await asyncio.create_subprocess_exec(launch.command, *launch.args, **pipes)

    async def _transmit(self, message: dict[str, Any]) -> None:
        process = self._process
        method = message.get("method")
        if process is None or process.stdin is None or process.stdin.is_closing():
            raise create_error(
                "TRANSPORT_CLOSED",
                reason="process is not running",
                server_name=self.name,
                method=method,
            )

        try:
            data = JSONRPCMessage.encode(message)
        except (TypeError, ValueError) as e:
            raise get_error_factory().from_encode_error(e, message, server_name=self.name) from e

        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise create_error(
                "TRANSPORT_CLOSED",
                reason=str(e) or type(e).__name__,
                server_name=self.name,
                method=method,
            ) from e

    async def _read_stdout(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None
        while True:
            chunk = await process.stdout.read(_READ_CHUNK)
            if not chunk:
                break
            dropped = self._framer.dropped
            for line in self._framer.feed(chunk):
                self._handle_line(line)
            if self._framer.dropped > dropped and self._logger:
                self._logger.warn(
                    f"Dropped a stdout line longer than {self._framer.max_line} bytes"
                )

        self._stdout_eof.set()
        self.correlator.fail_all("server closed its stdout")

    def _handle_line(self, line: bytes) -> None:
        try:
            message = JSONRPCMessage.parse(line)
        except ValueError as e:
            # Not JSON-RPC: often a banner printed by the server
            text = line.decode("utf-8", errors="replace")
            error = create_error(
                "PROTOCOL_PARSE",
                reason=str(e),
                raw=text[:100],
                server_name=self.name,
            )
            if self._logger:
                self._logger.debug(error.message, code=error.code)
            if self.on_log:
                self.on_log(LogStream.STDOUT, text)
            return

        try:
            self.correlator.dispatch(message)
        except Exception as e:
            # One bad message must not stop the reader
            if self._logger:
                self._logger.warn(
                    f"Failed to handle message: {e}",
                    raw=line[:100].decode("utf-8", errors="replace"),
                )

    async def _read_stderr(self, process: asyncio.subprocess.Process) -> None:
        assert process.stderr is not None
        while True:
            try:
                raw = await process.stderr.readline()
            except ValueError:
                # Line longer than the stream limit; the buffer was discarded
                if self._logger:
                    self._logger.warn("Dropped an overlong stderr line")
                continue
            if not raw:
                break
            text = raw.decode("utf-8", errors="replace").strip()
            if text:
                self._emit_log(LogStream.STDERR, text)

    async def _watch_exit(self, process: asyncio.subprocess.Process) -> None:
        code = await process.wait()
        if self._process is not process:
            # close() already tore this process down
            return
        self._emit_log(LogStream.INFO, f"Process exited with code {code}")
        self._notify_closed(f"process exited with code {code}")

    async def close(self) -> None:
        """Terminate the process, killing it after the shutdown timeout.

        Safe to call more than once.
        """
        process, self._process = self._process, None
        self._closed = True
        if process is not None and process.returncode is None:
            try:
                process.terminate()
                await asyncio.wait_for(process.wait(), timeout=self.settings.shutdown_timeout)
            except ProcessLookupError:
                pass
            except TimeoutError:
                if self._logger:
                    self._logger.warn("Process did not exit after terminate, killing")
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()

        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self.correlator.fail_all("transport closed")
