"""
Bolo Agent - Settings

Agent settings come from built-in defaults, an optional YAML file, and
command-line flags, in increasing order of precedence.
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

import structlog
import yaml

from .errors import SettingsError
from .forwarder import DEFAULT_ENDPOINT
from .registry import COMMAND_MAX

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG = "/etc/bolo-agent.conf"
LOG_FORMATS = ("console", "json")

# Accepted YAML types per setting; bool is never accepted as a number
_SETTING_TYPES = {
    "interval": (int, float),
    "config": (str,),
    "endpoint": (str,),
    "foreground": (bool,),
    "debug": (bool,),
    "max_concurrent": (int,),
    "timeout": (int, float, type(None)),
    "capacity": (int,),
    "log_format": (str,),
}


@dataclass
class AgentSettings:
    """Agent configuration."""

    interval: float = 30  # seconds between cycles
    config: str = DEFAULT_CONFIG
    endpoint: str = DEFAULT_ENDPOINT
    foreground: bool = False
    debug: bool = False
    max_concurrent: int = 1
    timeout: Optional[float] = None  # per collector, seconds
    capacity: int = COMMAND_MAX
    log_format: str = "console"

    def merge(self, **overrides) -> "AgentSettings":
        """Return a copy with every override that is not None applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> "AgentSettings":
        """Check ranges; raises SettingsError on the first bad value."""
        if self.interval < 0:
            raise SettingsError(f"interval must be >= 0, got {self.interval}")
        if self.max_concurrent < 1:
            raise SettingsError(f"max_concurrent must be >= 1, got {self.max_concurrent}")
        if self.timeout is not None and self.timeout <= 0:
            raise SettingsError(f"timeout must be > 0, got {self.timeout}")
        if self.capacity < 2:
            raise SettingsError(f"capacity must be >= 2, got {self.capacity}")
        if self.log_format not in LOG_FORMATS:
            raise SettingsError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
        if not self.endpoint:
            raise SettingsError("endpoint must not be empty")
        return self


def load_settings(path: Optional[str] = None) -> AgentSettings:
    """Load settings from a YAML file, falling back to defaults.

    A missing file is not an error; a malformed one is.
    """
    if not path:
        return AgentSettings()

    settings_path = Path(path)
    if not settings_path.exists():
        logger.warning("Settings file not found, using defaults", path=path)
        return AgentSettings()

    try:
        with open(settings_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise SettingsError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise SettingsError(f"Failed to read {path}: {e}") from e

    if not isinstance(data, dict):
        raise SettingsError(f"{path}: expected a mapping of settings")

    known = {f.name for f in fields(AgentSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise SettingsError(f"{path}: unknown settings: {', '.join(unknown)}")

    for key, value in data.items():
        expected = _SETTING_TYPES[key]
        if isinstance(value, bool) and bool not in expected or not isinstance(value, expected):
            names = " or ".join("null" if t is type(None) else t.__name__ for t in expected)
            raise SettingsError(f"{path}: {key} must be {names}, got {value!r}")

    try:
        settings = AgentSettings(**data)
    except TypeError as e:
        raise SettingsError(f"{path}: {e}") from e

    logger.info("Settings loaded", path=path)
    return settings
