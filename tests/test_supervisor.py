"""
Bolo Agent - Supervisor Tests

These spawn real /bin/sh children.
"""

import asyncio
import subprocess
from unittest.mock import patch

import pytest

from bolo_agent.errors import SupervisorError
from bolo_agent.supervisor import CollectorProcess, ProcessSupervisor


async def collect(proc: CollectorProcess):
    return [line async for line in proc.lines()]


class TestCollectorProcess:
    """Test a single collector run."""

    @pytest.mark.asyncio
    async def test_reads_lines_until_eof(self):
        """Test every output line is yielded, newline removed."""
        supervisor = ProcessSupervisor(foreground=True)

        async with supervisor.run("printf 'SAMPLE 1 a:b 2\\nRATE 1 c:d 3\\n'") as proc:
            lines = await collect(proc)
            status = await proc.wait()

        assert lines == ["SAMPLE 1 a:b 2", "RATE 1 c:d 3"]
        assert status == 0

    @pytest.mark.asyncio
    async def test_last_line_without_newline(self):
        """Test a final unterminated line is still delivered."""
        async with ProcessSupervisor().run("printf 'EVENT 1 a:b done'") as proc:
            assert await collect(proc) == ["EVENT 1 a:b done"]

    @pytest.mark.asyncio
    async def test_nonzero_exit_reported(self):
        """Test a failing collector keeps its output and reports its status."""
        async with ProcessSupervisor().run("echo 'SAMPLE 1 a:b 2'; exit 3") as proc:
            lines = await collect(proc)
            status = await proc.wait()

        assert lines == ["SAMPLE 1 a:b 2"]
        assert status == 3
        assert proc.returncode == 3

    @pytest.mark.asyncio
    async def test_stdin_is_devnull(self):
        """Test a collector reading stdin sees EOF instead of blocking."""
        async with ProcessSupervisor(timeout=5).run("cat; echo done") as proc:
            lines = await collect(proc)
            await proc.wait()

        assert lines == ["done"]
        assert proc.timed_out is False

    @pytest.mark.asyncio
    async def test_stderr_not_captured(self):
        """Test stderr output never reaches the line stream."""
        async with ProcessSupervisor().run("echo oops >&2; echo ok") as proc:
            assert await collect(proc) == ["ok"]

    @pytest.mark.asyncio
    async def test_missing_command(self):
        """Test an unknown command is a shell failure, not a spawn failure."""
        async with ProcessSupervisor().run("/nonexistent/collector") as proc:
            assert await collect(proc) == []
            assert await proc.wait() == 127

    @pytest.mark.asyncio
    async def test_wait_discards_unread_output(self):
        """Test wait() reaps the child even if lines were never read."""
        proc = await ProcessSupervisor().run("seq 1 5000").start()

        assert await proc.wait() == 0

    @pytest.mark.asyncio
    async def test_timeout_kills_collector(self):
        """Test a collector running past its timeout is killed."""
        async with ProcessSupervisor(timeout=0.3).run("echo SAMPLE 1 a:b 2; exec sleep 10") as proc:
            lines = await collect(proc)
            status = await proc.wait()

        assert lines == ["SAMPLE 1 a:b 2"]
        assert proc.timed_out is True
        assert status != 0

    @pytest.mark.asyncio
    async def test_lines_not_restartable(self):
        """Test the output stream can only be consumed once."""
        async with ProcessSupervisor().run("echo hi") as proc:
            await collect(proc)
            with pytest.raises(SupervisorError):
                await collect(proc)

    @pytest.mark.asyncio
    async def test_not_started(self):
        """Test lines() and wait() require a started process."""
        proc = ProcessSupervisor().run("echo hi")

        with pytest.raises(SupervisorError):
            await collect(proc)
        with pytest.raises(SupervisorError):
            await proc.wait()

    @pytest.mark.asyncio
    async def test_start_twice(self):
        """Test a run spawns exactly one child."""
        proc = await ProcessSupervisor().run("true").start()

        with pytest.raises(SupervisorError):
            await proc.start()
        await proc.wait()

    @pytest.mark.asyncio
    async def test_spawn_failure(self):
        """Test an OS error while spawning becomes a SupervisorError."""
        with patch(
            "bolo_agent.supervisor.process.asyncio.create_subprocess_shell",
            side_effect=OSError(24, "Too many open files"),
        ):
            with pytest.raises(SupervisorError, match="Too many open files"):
                async with ProcessSupervisor().run("true"):
                    pass

    @pytest.mark.asyncio
    async def test_abandoned_run_is_reaped(self):
        """Test leaving the block with an exception kills and reaps the child."""
        with pytest.raises(RuntimeError):
            async with ProcessSupervisor().run("exec sleep 10") as proc:
                raise RuntimeError("consumer failed")

        assert proc.returncode is not None
        assert proc.returncode < 0


class TestProcessSupervisor:
    """Test supervisor settings are passed to each run."""

    def test_run_is_lazy(self):
        """Test run() does not spawn anything by itself."""
        supervisor = ProcessSupervisor(foreground=True, timeout=2.5)

        proc = supervisor.run("uptime")

        assert isinstance(proc, CollectorProcess)
        assert proc.command == "uptime"
        assert proc.pid is None

    @pytest.mark.asyncio
    async def test_detached_stderr(self):
        """Test stderr is discarded when not in the foreground."""
        with patch(
            "bolo_agent.supervisor.process.asyncio.create_subprocess_shell",
            wraps=asyncio.create_subprocess_shell,
        ) as spawn:
            async with ProcessSupervisor(foreground=False).run("true") as proc:
                await proc.wait()

        kwargs = spawn.call_args.kwargs
        assert kwargs["stdin"] == subprocess.DEVNULL
        assert kwargs["stdout"] == subprocess.PIPE
        assert kwargs["stderr"] == subprocess.DEVNULL
