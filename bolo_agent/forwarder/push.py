"""
Bolo Agent - Frame Forwarder

Pushes metric events to the broker as multipart ZeroMQ messages.

Nothing is acknowledged and nothing is retried: if a frame fails to send,
the rest of that message is abandoned and the next event goes out as usual.
"""

import json
import sys
from typing import Optional, TextIO

import structlog
import zmq
import zmq.asyncio

from ..errors import TransportError
from ..protocol import MetricEvent
from .base import BaseForwarder

logger = structlog.get_logger(__name__)

DEFAULT_ENDPOINT = "tcp://127.0.0.1:2999"


class FrameForwarder(BaseForwarder):
    """PUSH socket connected to a single broker endpoint."""

    def __init__(self, endpoint: str = DEFAULT_ENDPOINT, linger: int = 0):
        super().__init__()
        self.endpoint = endpoint
        self.linger = linger

        self._context: Optional[zmq.asyncio.Context] = None
        self._socket: Optional[zmq.asyncio.Socket] = None

    @property
    def name(self) -> str:
        return "zmq"

    @property
    def is_connected(self) -> bool:
        return self._socket is not None

    def connect(self) -> None:
        """Create the context and PUSH socket and connect to the broker.

        Raises:
            TransportError: If the socket cannot be created or connected
        """
        if self._socket is not None:
            return

        try:
            self._context = zmq.asyncio.Context()
            self._socket = self._context.socket(zmq.PUSH)
            self._socket.connect(self.endpoint)
        except zmq.ZMQError as e:
            self.close()
            raise TransportError(f"Failed to connect to '{self.endpoint}': {e}") from e

        logger.info("Broker socket connected", endpoint=self.endpoint)

    async def send(self, event: MetricEvent) -> bool:
        """Send one event as [delimiter, kind, tokens...]."""
        if self._socket is None:
            raise TransportError("Broker socket is not connected")

        frames = event.frames()
        last = len(frames) - 1

        for i, frame in enumerate(frames):
            try:
                await self._socket.send(frame, flags=zmq.SNDMORE if i < last else 0)
            except zmq.ZMQError as e:
                self.failed += 1
                logger.warning(
                    "Frame send failed",
                    frame=i,
                    metric=event.name,
                    kind=event.kind.value,
                    error=str(e),
                )
                return False

        self.sent += 1
        logger.debug("Forwarded event", frames="[" + "|".join(event.tokens) + "]")
        return True

    def close(self) -> None:
        """Close the socket without lingering on unsent messages."""
        if self._socket is not None:
            self._socket.close(linger=self.linger)
            self._socket = None

        if self._context is not None:
            self._context.term()
            self._context = None
            logger.debug("Broker socket closed", endpoint=self.endpoint)


class DryRunForwarder(BaseForwarder):
    """Writes events as JSON lines instead of sending them."""

    def __init__(self, stream: Optional[TextIO] = None):
        super().__init__()
        self._stream = stream

    @property
    def name(self) -> str:
        return "stdout"

    def connect(self) -> None:
        pass

    async def send(self, event: MetricEvent) -> bool:
        stream = self._stream or sys.stdout
        stream.write(json.dumps(event.to_dict()) + "\n")
        stream.flush()
        self.sent += 1
        return True

    def close(self) -> None:
        pass
