"""
Bolo Agent - Registry Package

Ordered collector commands, loaded once at startup.
"""

from .loader import COMMAND_MAX, CollectorRegistry, load_commands

__all__ = ["COMMAND_MAX", "CollectorRegistry", "load_commands"]
