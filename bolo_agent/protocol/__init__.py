"""
Bolo Agent - Protocol Package

Line protocol spoken by collectors and the multipart frames sent to the broker.
"""

from .events import EventKind, MetricEvent
from .parser import parse_line, parse_lines

__all__ = ["EventKind", "MetricEvent", "parse_line", "parse_lines"]
