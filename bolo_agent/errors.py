"""
Bolo Agent - Errors

Startup-phase errors are fatal; the scheduler catches the rest per collector.
"""


class AgentError(Exception):
    """Base exception for agent errors."""
    pass


class SettingsError(AgentError):
    """Agent settings are malformed or out of range."""
    pass


class RegistryError(AgentError):
    """Collector configuration could not be read."""
    pass


class SupervisorError(AgentError):
    """A collector process could not be spawned or driven."""
    pass


class TransportError(AgentError):
    """The broker socket could not be created, connected or used."""
    pass
