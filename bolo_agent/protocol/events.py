"""
Bolo Agent - Metric Events

Typed representation of one collector output line and its wire frames.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class EventKind(str, Enum):
    """Metric kinds understood by the broker."""
    STATE = "STATE"
    COUNTER = "COUNTER"
    SAMPLE = "SAMPLE"
    RATE = "RATE"
    EVENT = "EVENT"


@dataclass(frozen=True)
class MetricEvent:
    """A parsed metric, ready to be forwarded.

    ``timestamp`` and ``value`` are opaque tokens and are never converted
    to numbers. ``value`` is None for EVENT; ``extra`` carries the free-text
    remainder of STATE and EVENT lines.
    """
    kind: EventKind
    timestamp: str
    name: str
    value: Optional[str] = None
    extra: Optional[str] = None

    @property
    def tokens(self) -> List[str]:
        """Data tokens in wire order, kind tag first."""
        tokens = [self.kind.value, self.timestamp, self.name]

        if self.kind == EventKind.STATE:
            tokens.extend([self.value or "", self.extra or ""])
        elif self.kind == EventKind.EVENT:
            tokens.append(self.extra or "")
        else:
            tokens.append(self.value or "")

        return tokens

    def frames(self) -> List[bytes]:
        """Encode as a multipart message: empty delimiter, then NUL-terminated tokens."""
        return [b""] + [token.encode("utf-8") + b"\0" for token in self.tokens]

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind.value,
            "timestamp": self.timestamp,
            "name": self.name,
            "value": self.value,
            "extra": self.extra,
        }
