"""
Bolo Agent - Protocol Parser

Decodes collector output lines into metric events.

Grammar (whitespace separated, one event per line):

    STATE   <ts> <name> <value> [message...]
    COUNTER <ts> <name> [increment...]       increment defaults to "1"
    SAMPLE  <ts> <name> <value>
    RATE    <ts> <name> <value>
    EVENT   <ts> <name> [message...]         message defaults to ""

Lines with an unknown kind or a missing token are dropped without error.
"""

import re
from typing import Iterable, Iterator, List, Optional, Tuple

import structlog

from .events import EventKind, MetricEvent

logger = structlog.get_logger(__name__)

# ASCII whitespace only, matching what collectors emit
WHITESPACE = " \t\n\r\f\v"
_TOKEN = re.compile(r"[ \t\n\r\f\v]*([^ \t\n\r\f\v]+)")


def _take(line: str, pos: int, count: int) -> Optional[Tuple[List[str], int]]:
    """Read ``count`` tokens starting at ``pos``; None if the line runs out."""
    tokens = []
    for _ in range(count):
        match = _TOKEN.match(line, pos)
        if not match:
            return None
        tokens.append(match.group(1))
        pos = match.end()
    return tokens, pos


def _remainder(line: str, pos: int) -> str:
    """Rest of the line after ``pos``, leading whitespace removed, cut at the newline."""
    return line[pos:].lstrip(WHITESPACE).split("\n", 1)[0]


def parse_line(line: str) -> Optional[MetricEvent]:
    """Parse one protocol line, returning None when it is not a valid event."""
    head = _take(line, 0, 1)
    if head is None:
        return None

    try:
        kind = EventKind(head[0][0])
    except ValueError:
        return None
    pos = head[1]

    if kind in (EventKind.SAMPLE, EventKind.RATE):
        taken = _take(line, pos, 3)
        if taken is None:
            return None
        (ts, name, value), _ = taken
        return MetricEvent(kind, ts, name, value)

    if kind == EventKind.STATE:
        logger.debug("STATE events have limited broker support")
        taken = _take(line, pos, 3)
        if taken is None:
            return None
        (ts, name, value), pos = taken
        return MetricEvent(kind, ts, name, value, _remainder(line, pos))

    taken = _take(line, pos, 2)
    if taken is None:
        return None
    (ts, name), pos = taken
    rest = _remainder(line, pos)

    if kind == EventKind.COUNTER:
        return MetricEvent(kind, ts, name, rest or "1")
    return MetricEvent(kind, ts, name, extra=rest)


def parse_lines(lines: Iterable[str]) -> Iterator[MetricEvent]:
    """Parse a stream of lines, skipping anything that is not an event."""
    for line in lines:
        event = parse_line(line)
        if event is not None:
            yield event
