"""
Bolo Agent - Base Forwarder Interface

All forwarders take parsed metric events and deliver them somewhere,
best effort: a failed send is counted and logged, never retried.
"""

from abc import ABC, abstractmethod

from ..protocol import MetricEvent


class BaseForwarder(ABC):
    """Base class for event forwarders."""

    def __init__(self):
        self.sent = 0
        self.failed = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Forwarder name (e.g., 'zmq', 'stdout')."""
        pass

    @abstractmethod
    def connect(self) -> None:
        """Acquire the underlying transport. Raises TransportError on failure."""
        pass

    @abstractmethod
    async def send(self, event: MetricEvent) -> bool:
        """Deliver one event. Returns False if the send failed."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the transport. Safe to call more than once."""
        pass
