"""
Bolo Agent - Scheduler Loop

Runs every registered collector once per cycle, forwards the events they
produce, then sleeps for the configured interval. Forever, until stopped.

Collectors run one at a time by default. With ``max_concurrent > 1`` up to
that many collector processes run at once, but a single writer still forwards
their events in registry order, and within a collector in line order.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import structlog

from ..errors import SupervisorError
from ..forwarder import BaseForwarder
from ..protocol import MetricEvent, parse_line
from ..registry import CollectorRegistry
from ..supervisor import ProcessSupervisor

logger = structlog.get_logger(__name__)

Sink = Callable[[MetricEvent, "CollectorResult"], Awaitable[None]]


class SchedulerState(str, Enum):
    """Scheduler loop state."""
    IDLE = "idle"
    COLLECTING = "collecting"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


@dataclass
class CollectorResult:
    """Outcome of one collector run within a cycle."""
    command: str
    returncode: Optional[int] = None
    lines: int = 0
    events: int = 0
    sent: int = 0
    failed_sends: int = 0
    timed_out: bool = False
    error: Optional[str] = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out and self.returncode == 0

    def to_dict(self) -> Dict:
        return {
            "command": self.command,
            "returncode": self.returncode,
            "lines": self.lines,
            "events": self.events,
            "sent": self.sent,
            "failed_sends": self.failed_sends,
            "timed_out": self.timed_out,
            "error": self.error,
            "duration": round(self.duration, 3),
        }


@dataclass
class CycleReport:
    """Summary of one pass over the registry."""
    cycle: int
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    results: List[CollectorResult] = field(default_factory=list)
    duration: float = 0.0

    @property
    def events(self) -> int:
        return sum(r.events for r in self.results)

    @property
    def failures(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    def to_dict(self) -> Dict:
        return {
            "cycle": self.cycle,
            "started_at": self.started_at.isoformat(),
            "duration": round(self.duration, 3),
            "events": self.events,
            "failures": self.failures,
            "collectors": [r.to_dict() for r in self.results],
        }


class Scheduler:
    """Drives collectors, parser and forwarder on a fixed interval."""

    def __init__(
        self,
        registry: CollectorRegistry,
        supervisor: ProcessSupervisor,
        forwarder: BaseForwarder,
        interval: float = 30,
        max_concurrent: int = 1,
    ):
        self.registry = registry
        self.supervisor = supervisor
        self.forwarder = forwarder
        self.interval = interval
        self.max_concurrent = max(1, max_concurrent)

        self._state = SchedulerState.IDLE
        self._stop_event = asyncio.Event()
        self._cycles = 0
        self.last_report: Optional[CycleReport] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def cycles(self) -> int:
        return self._cycles

    def stop(self) -> None:
        """Ask the loop to exit; a pending sleep is cut short."""
        self._stop_event.set()

    async def run_forever(self) -> None:
        """Alternate between collecting and sleeping until stopped."""
        logger.info(
            "Starting main loop",
            collectors=len(self.registry),
            interval=self.interval,
            max_concurrent=self.max_concurrent,
        )

        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_cycle()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.exception("Cycle error", error=str(e))

                if self._stop_event.is_set():
                    break

                self._state = SchedulerState.SLEEPING
                logger.debug("Sleeping", seconds=self.interval)
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._state = SchedulerState.STOPPED
            logger.info("Main loop stopped", cycles=self._cycles)

    async def run_once(self) -> CycleReport:
        """Run a single cycle and leave the scheduler stopped."""
        try:
            return await self.run_cycle()
        finally:
            self._stop_event.set()
            self._state = SchedulerState.STOPPED

    async def run_cycle(self) -> CycleReport:
        """Run every collector once, in registry order."""
        self._state = SchedulerState.COLLECTING
        self._cycles += 1
        report = CycleReport(cycle=self._cycles)
        start_time = time.monotonic()

        if self.max_concurrent == 1:
            for command in self.registry:
                report.results.append(await self._run_collector(command, self._forward))
        else:
            report.results.extend(await self._run_pooled())

        report.duration = time.monotonic() - start_time
        self.last_report = report

        logger.info(
            "Cycle completed",
            cycle=report.cycle,
            collectors=len(report.results),
            events=report.events,
            failures=report.failures,
            duration=round(report.duration, 3),
        )
        return report

    async def _forward(self, event: MetricEvent, result: CollectorResult) -> None:
        if await self.forwarder.send(event):
            result.sent += 1
        else:
            result.failed_sends += 1

    async def _run_collector(self, command: str, sink: Sink) -> CollectorResult:
        """Spawn one collector, parse its output and hand each event to ``sink``."""
        result = CollectorResult(command=command)
        start_time = time.monotonic()

        try:
            async with self.supervisor.run(command) as proc:
                async for line in proc.lines():
                    result.lines += 1
                    event = parse_line(line)
                    if event is None:
                        continue
                    result.events += 1
                    await sink(event, result)

                result.returncode = await proc.wait()
                result.timed_out = proc.timed_out

        except SupervisorError as e:
            result.error = str(e)
            logger.warning("Collector failed", command=command, error=str(e))

        finally:
            result.duration = time.monotonic() - start_time

        return result

    async def _run_pooled(self) -> List[CollectorResult]:
        """Run collectors concurrently; forward their events in registry order."""
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def worker(command: str) -> Tuple[CollectorResult, List[MetricEvent]]:
            buffered: List[MetricEvent] = []

            async def buffer(event: MetricEvent, result: CollectorResult) -> None:
                buffered.append(event)

            async with semaphore:
                result = await self._run_collector(command, buffer)
            return result, buffered

        tasks = [asyncio.create_task(worker(command)) for command in self.registry]
        results = []

        try:
            # Single writer: drain each collector's buffer in registry order
            for task in tasks:
                result, buffered = await task
                for event in buffered:
                    await self._forward(event, result)
                results.append(result)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        return results
