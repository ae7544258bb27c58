"""
Bolo Agent - Supervisor Package

Child process lifecycle for collector commands.
"""

from .process import CollectorProcess, ProcessSupervisor

__all__ = ["CollectorProcess", "ProcessSupervisor"]
