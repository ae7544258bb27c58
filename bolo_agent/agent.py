"""
Bolo Agent - Main

Parses the command line, performs the startup checks, detaches from the
terminal unless told to stay in the foreground, and runs the scheduler.

Usage:
    bolo-agent -i 30 -c /etc/bolo-agent.conf -e tcp://10.0.0.1:2999

Exit status:
    0   normal shutdown (signal, or --once finished)
    1   bad command-line arguments
    2   startup failure (settings, collector config, broker socket, detach)
"""

import argparse
import asyncio
import os
import signal
import sys
from typing import List, Optional

import structlog

from . import __version__
from .config import AgentSettings, load_settings
from .errors import AgentError, SettingsError
from .forwarder import BaseForwarder, DryRunForwarder, FrameForwarder
from .log import configure_logging
from .registry import CollectorRegistry
from .scheduler import Scheduler, SchedulerState
from .supervisor import ProcessSupervisor

logger = structlog.get_logger(__name__)

EXIT_USAGE = 1
EXIT_STARTUP = 2


def daemonize() -> None:
    """Detach: chdir to /, fork (the parent exits 0), start a new session.

    Raises:
        AgentError: If any step fails
    """
    try:
        os.chdir("/")
    except OSError as e:
        raise AgentError(f"Failed to chdir to /: {e}") from e

    try:
        pid = os.fork()
    except OSError as e:
        raise AgentError(f"Failed to fork: {e}") from e
    if pid != 0:
        os._exit(0)

    try:
        os.setsid()
    except OSError as e:
        raise AgentError(f"Failed to set session id: {e}") from e


class BoloAgent:
    """Main agent application."""

    def __init__(self, settings: AgentSettings, dry_run: bool = False):
        self.settings = settings
        self.dry_run = dry_run

        self.supervisor = ProcessSupervisor(
            foreground=settings.foreground,
            timeout=settings.timeout,
        )
        self.forwarder: BaseForwarder = (
            DryRunForwarder() if dry_run else FrameForwarder(settings.endpoint)
        )
        self.registry: Optional[CollectorRegistry] = None
        self.scheduler: Optional[Scheduler] = None
        self._task: Optional[asyncio.Task] = None

    def prepare(self, detach: bool = True) -> None:
        """Startup phase. Every failure here is fatal.

        The broker socket is created after detaching; a ZeroMQ context
        does not survive fork().
        """
        self.registry = CollectorRegistry.load(self.settings.config, capacity=self.settings.capacity)

        if detach and not self.settings.foreground:
            daemonize()

        self.forwarder.connect()

        self.scheduler = Scheduler(
            self.registry,
            self.supervisor,
            self.forwarder,
            interval=self.settings.interval,
            max_concurrent=self.settings.max_concurrent,
        )

    async def run(self, once: bool = False) -> None:
        """Run the scheduler until a signal arrives (or for one cycle)."""
        if self.scheduler is None:
            raise AgentError("Agent not prepared")

        loop = asyncio.get_running_loop()
        self._task = asyncio.current_task()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, self.handle_signal, signum)

        logger.info("Starting Bolo agent", version=__version__, forwarder=self.forwarder.name)
        try:
            if once:
                await self.scheduler.run_once()
            else:
                await self.scheduler.run_forever()
        except asyncio.CancelledError:
            logger.info("Collection interrupted")
        finally:
            for signum in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(signum)
            self.stop()

    def handle_signal(self, signum: int) -> None:
        """Stop the loop; a cycle in progress is abandoned and its child killed."""
        logger.info("Received signal", signal=signum)
        if self.scheduler is None:
            return
        collecting = self.scheduler.state == SchedulerState.COLLECTING
        self.scheduler.stop()
        if collecting and self._task is not None:
            self._task.cancel()

    def stop(self) -> None:
        """Release the broker socket."""
        self.forwarder.close()
        logger.info(
            "Bolo agent stopped",
            sent=self.forwarder.sent,
            failed=self.forwarder.failed,
        )


class _ArgumentParser(argparse.ArgumentParser):
    """Exits 1 on bad arguments rather than argparse's default 2."""

    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="bolo-agent",
        description="Bolo Agent - run metric collectors and push results to a broker",
    )
    parser.add_argument("--version", action="version", version=f"bolo-agent {__version__}")

    parser.add_argument("-i", "--interval", type=float, help="Seconds to sleep between cycles (default: 30)")
    parser.add_argument("-c", "--config", help="Collector command file (default: /etc/bolo-agent.conf)")
    parser.add_argument("-e", "--endpoint", help="Broker endpoint (default: tcp://127.0.0.1:2999)")
    parser.add_argument(
        "-F", "--foreground",
        action="store_true",
        default=None,
        help="Stay attached to the terminal; collectors share our stderr",
    )
    parser.add_argument("-D", "--debug", action="store_true", default=None, help="Verbose diagnostic logging")
    parser.add_argument("-s", "--settings", help="YAML settings file")
    parser.add_argument("-j", "--jobs", type=int, dest="max_concurrent", help="Collectors to run concurrently (default: 1)")
    parser.add_argument("-t", "--timeout", type=float, help="Kill a collector after this many seconds")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print events as JSON lines instead of sending them",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.settings).merge(
            interval=args.interval,
            config=args.config,
            endpoint=args.endpoint,
            foreground=args.foreground,
            debug=args.debug,
            max_concurrent=args.max_concurrent,
            timeout=args.timeout,
        ).validate()
    except SettingsError as e:
        configure_logging()
        logger.error("Invalid settings", error=str(e))
        return EXIT_STARTUP

    configure_logging(settings.debug, settings.log_format)

    agent = BoloAgent(settings, dry_run=args.dry_run)
    try:
        agent.prepare()
    except AgentError as e:
        logger.error("Startup failed", error=str(e))
        agent.forwarder.close()
        return EXIT_STARTUP

    asyncio.run(agent.run(once=args.once))
    return 0


if __name__ == "__main__":
    sys.exit(main())
