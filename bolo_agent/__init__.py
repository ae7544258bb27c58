"""
Bolo Agent

Runs collector commands on an interval, parses their metric lines and
pushes each event to a Bolo broker over ZeroMQ.
"""

__version__ = "0.4.0"
