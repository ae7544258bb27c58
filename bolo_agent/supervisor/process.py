"""
Bolo Agent - Process Supervisor

Spawns collector commands through /bin/sh and streams their standard output.

Each child gets stdin from /dev/null and stdout on a pipe. stderr is shared
with the agent in foreground mode and discarded once detached.
"""

import asyncio
import os
import signal
import subprocess
from typing import AsyncIterator, Optional

import structlog

from ..errors import SupervisorError

logger = structlog.get_logger(__name__)


class CollectorProcess:
    """One run of a collector command. Not restartable.

    Usage:
        async with supervisor.run(command) as proc:
            async for line in proc.lines():
                ...
            status = await proc.wait()
    """

    def __init__(self, command: str, foreground: bool = False, timeout: Optional[float] = None):
        self.command = command
        self._foreground = foreground
        self._timeout = timeout

        self._process: Optional[asyncio.subprocess.Process] = None
        self._deadline: Optional[float] = None
        self._consumed = False
        self.timed_out = False
        self.returncode: Optional[int] = None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    async def __aenter__(self) -> "CollectorProcess":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._process is None or self.returncode is not None:
            return
        if exc_type is not None:
            # Abandoned mid-stream; kill and reap so no zombie is left
            self._kill()
            self.returncode = await self._process.wait()
        else:
            await self.wait()

    async def start(self) -> "CollectorProcess":
        """Spawn the collector.

        Raises:
            SupervisorError: If the child process cannot be created
        """
        if self._process is not None:
            raise SupervisorError(f"Collector already started: {self.command}")

        try:
            self._process = await asyncio.create_subprocess_shell(
                self.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=None if self._foreground else subprocess.DEVNULL,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            raise SupervisorError(f"Failed to spawn `{self.command}`: {e}") from e

        if self._timeout:
            self._deadline = asyncio.get_running_loop().time() + self._timeout

        logger.debug("Collector running", pid=self._process.pid, command=self.command)
        return self

    def _remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - asyncio.get_running_loop().time())

    def _kill(self) -> None:
        if self._process is None or self._process.returncode is not None:
            return
        try:
            os.killpg(self._process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    async def lines(self) -> AsyncIterator[str]:
        """Yield each output line, newline removed, until end of stream."""
        if self._process is None:
            raise SupervisorError(f"Collector not started: {self.command}")
        if self._consumed:
            raise SupervisorError(f"Collector output already consumed: {self.command}")
        self._consumed = True

        stdout = self._process.stdout
        while True:
            try:
                raw = await asyncio.wait_for(stdout.readline(), timeout=self._remaining())
            except asyncio.TimeoutError:
                self._expire()
                return
            except ValueError:
                # Line exceeded the stream limit; the buffered part was discarded
                logger.warning("Dropping oversized collector line", command=self.command)
                continue

            if not raw:
                return
            yield raw.decode("utf-8", errors="replace").rstrip("\n")

    def _expire(self) -> None:
        self.timed_out = True
        logger.warning("Collector timed out", command=self.command, timeout=self._timeout)
        self._kill()

    async def wait(self) -> int:
        """Finish reading the pipe, reap the child and return its exit status."""
        if self._process is None:
            raise SupervisorError(f"Collector not started: {self.command}")
        if self.returncode is not None:
            return self.returncode

        if not self.timed_out:
            try:
                # Unread output is discarded
                await asyncio.wait_for(self._process.stdout.read(), timeout=self._remaining())
                self.returncode = await asyncio.wait_for(
                    self._process.wait(), timeout=self._remaining()
                )
            except asyncio.TimeoutError:
                self._expire()

        if self.returncode is None:
            self.returncode = await self._process.wait()

        if self.returncode != 0:
            logger.warning("Collector exited non-zero", command=self.command, status=self.returncode)
        else:
            logger.debug("Collector exited", command=self.command, pid=self._process.pid)

        return self.returncode


class ProcessSupervisor:
    """Creates collector processes with a shared stream policy."""

    def __init__(self, foreground: bool = False, timeout: Optional[float] = None):
        self.foreground = foreground
        self.timeout = timeout

    def run(self, command: str) -> CollectorProcess:
        """Prepare a single-use run of ``command``; spawned on ``start`` or ``async with``."""
        return CollectorProcess(command, foreground=self.foreground, timeout=self.timeout)
