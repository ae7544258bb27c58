"""
Bolo Agent - Scheduler Package

The collect/sleep cycle that ties registry, supervisor, parser and forwarder together.
"""

from .loop import CollectorResult, CycleReport, Scheduler, SchedulerState

__all__ = ["CollectorResult", "CycleReport", "Scheduler", "SchedulerState"]
