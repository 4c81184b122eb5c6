"""Load generator subprocess lifecycle: spawn, drain, wait, kill, dispose.

stdout and stderr are drained by two independent reader tasks, each appending
to its own accumulator, so no cross-stream locking is needed. wait() joins
both readers after the process exits; the accumulated text is complete once
it returns.
"""

from __future__ import annotations

import asyncio
import shlex
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .exceptions import LoadbenchProcessError
from .logging_config import get_logger

logger = get_logger("process")

# Reader buffer limit; wrk2 spectrum lines are short but scripts may print more
STREAM_LIMIT_BYTES = 1024 * 1024


class RunnerState(str, Enum):
    IDLE = "idle"
    SPAWNED = "spawned"
    DRAINING = "draining"
    EXITED = "exited"


@dataclass(frozen=True, slots=True)
class ProcessOutcome:
    returncode: int | None
    output: str
    error: str


class ProcessRunner:
    """Owns one subprocess and its output accumulators. Not shared across jobs."""

    def __init__(self, name: str = "wrk2") -> None:
        self.name = name
        self.state = RunnerState.IDLE
        self._process: asyncio.subprocess.Process | None = None
        self._readers: list[asyncio.Task[None]] = []
        self._output: list[str] = []
        self._error: list[str] = []
        self._disposed = False

    @property
    def output(self) -> str:
        return "".join(self._output)

    @property
    def error(self) -> str:
        return "".join(self._error)

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def has_exited(self) -> bool:
        return self._process is None or self._process.returncode is not None

    async def start(self, command: str, cwd: str | Path | None = None, line_buffer: bool = True) -> None:
        """Spawn the command and start draining its output.

        Args:
            command: Command line (shell quoting rules apply to split it)
            cwd: Working directory, where relative script paths resolve
            line_buffer: Run through `stdbuf -oL` so report lines arrive as they are printed

        Raises:
            LoadbenchProcessError: If already started or the executable cannot be spawned
        """
        if self.state is not RunnerState.IDLE or self._disposed:
            raise LoadbenchProcessError("Process runner already used", context={"state": self.state.value})
        try:
            argv = shlex.split(command)
        except ValueError as e:
            raise LoadbenchProcessError(
                "Cannot split command line",
                context={"command": command},
                original_error=e,
            ) from e
        if line_buffer:
            argv = ["stdbuf", "-oL", *argv]
        try:
            self._process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd) if cwd is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT_BYTES,
            )
        except OSError as e:
            logger.exception("Failed to spawn %s", argv[0])
            raise LoadbenchProcessError(
                f"Cannot start {argv[0]}",
                context={"command": command},
                original_error=e,
            ) from e

        self.state = RunnerState.SPAWNED
        logger.debug("Spawned %s (pid %s)", self.name, self._process.pid)
        self._readers = [
            asyncio.create_task(self._drain(self._process.stdout, self._output)),
            asyncio.create_task(self._drain(self._process.stderr, self._error)),
        ]

    async def _drain(self, stream: asyncio.StreamReader | None, sink: list[str]) -> None:
        if stream is None:
            return
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                # Line longer than the reader limit: take what is buffered
                line = await stream.read(STREAM_LIMIT_BYTES)
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip("\r\n")
            if not text:
                continue
            logger.info(text)
            sink.append(text + "\n")

    async def wait(self) -> ProcessOutcome:
        """Wait for exit, then for both streams to be fully drained."""
        if self._process is None:
            raise LoadbenchProcessError("Process was not started", context={"state": self.state.value})
        returncode = await self._process.wait()
        self.state = RunnerState.DRAINING
        await asyncio.gather(*self._readers)
        self.state = RunnerState.EXITED
        logger.debug("%s exited with code %s", self.name, returncode)
        return ProcessOutcome(returncode=returncode, output=self.output, error=self.error)

    def stop(self) -> None:
        """Kill the process if it is still running. Safe to call repeatedly or after exit."""
        if self._process is None or self._process.returncode is not None:
            return
        try:
            self._process.kill()
            logger.info("Killed %s (pid %s)", self.name, self._process.pid)
        except ProcessLookupError:
            pass

    def dispose(self) -> None:
        """Release the process handle. Only the first call has an effect."""
        if self._disposed:
            return
        self._disposed = True
        self.stop()
        for reader in self._readers:
            if not reader.done():
                reader.cancel()
        self._readers = []
        self._process = None
