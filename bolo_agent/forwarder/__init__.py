"""
Bolo Agent - Forwarder Package

Delivery of parsed events to the broker (or to stdout for dry runs).
"""

from .base import BaseForwarder
from .push import DEFAULT_ENDPOINT, DryRunForwarder, FrameForwarder

__all__ = ["BaseForwarder", "DEFAULT_ENDPOINT", "DryRunForwarder", "FrameForwarder"]
