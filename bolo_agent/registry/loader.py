"""
Bolo Agent - Collector Registry

Loads the ordered list of collector commands from the configuration file.
"""

import os
from typing import Iterable, Iterator, List, Sequence, Tuple, Union

import structlog

from ..errors import RegistryError

logger = structlog.get_logger(__name__)

# Total bytes of NUL-terminated command text the registry will hold
COMMAND_MAX = 8192

Source = Union[str, "os.PathLike[str]", Iterable[str]]


def _read_commands(lines: Iterable[str], capacity: int) -> Tuple[List[str], int, bool]:
    """Collect commands until the source ends or capacity runs out.

    Returns (commands, bytes_used, truncated).
    """
    commands: List[str] = []
    used = 0

    for line in lines:
        command = line.lstrip()
        if not command or command.startswith("#"):
            continue
        command = command.split("\n", 1)[0]

        cost = len(command.encode("utf-8", "surrogateescape")) + 1
        if used + cost > capacity - 1:
            logger.warning(
                "Too many collectors defined, truncating",
                capacity=capacity,
                loaded=len(commands),
            )
            return commands, used, True

        logger.debug("Read collector command", command=command)
        commands.append(command)
        used += cost

    return commands, used, False


def _open_lines(source: Source) -> Tuple[Iterable[str], bool]:
    if isinstance(source, (str, os.PathLike)):
        try:
            return open(source, "r", encoding="utf-8", errors="surrogateescape"), True
        except OSError as e:
            raise RegistryError(f"Failed to read {os.fspath(source)}: {e}") from e
    return source, False


def load_commands(source: Source, capacity: int = COMMAND_MAX) -> List[str]:
    """Load collector commands from a path or an iterable of lines."""
    return CollectorRegistry.load(source, capacity=capacity).commands_list()


class CollectorRegistry:
    """Immutable, ordered collection of collector commands.

    Order is execution order for every run cycle.
    """

    def __init__(self, commands: Sequence[str], bytes_used: int = 0, truncated: bool = False):
        self._commands = tuple(commands)
        self.bytes_used = bytes_used
        self.truncated = truncated

    @classmethod
    def load(cls, source: Source, capacity: int = COMMAND_MAX) -> "CollectorRegistry":
        """Load from a configuration file path or an iterable of lines.

        Raises:
            RegistryError: If the file cannot be opened or read
        """
        lines, owned = _open_lines(source)
        try:
            commands, used, truncated = _read_commands(lines, capacity)
        except OSError as e:
            raise RegistryError(f"Failed to read collector configuration: {e}") from e
        finally:
            if owned:
                lines.close()

        logger.info("Collector registry loaded", collectors=len(commands), bytes=used)
        return cls(commands, bytes_used=used, truncated=truncated)

    @property
    def commands(self) -> Tuple[str, ...]:
        return self._commands

    def commands_list(self) -> List[str]:
        return list(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __iter__(self) -> Iterator[str]:
        return iter(self._commands)

    def __getitem__(self, index: int) -> str:
        return self._commands[index]

    def __repr__(self) -> str:
        return f"CollectorRegistry({len(self._commands)} collectors, truncated={self.truncated})"
