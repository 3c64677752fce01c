"""burnchat application configuration.

Loads settings from a single YAML file:
  * burnchat.settings.yaml: all tunables (there are no secrets)

The path can be overridden with the ``BURNCHAT_SETTINGS`` environment
variable. Every section has defaults, so a missing file yields a working
in-memory server.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("burnchat.settings.yaml")
SETTINGS_ENV_VAR = "BURNCHAT_SETTINGS"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s (using defaults)", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerConfig(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 5000
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    level: str = "info"


class RoomDefaults(BaseModel):
    """Settings applied to a new room when the first joiner sends none."""
    history_duration_hours: int  = Field(default=24, gt=0)
    max_users:              int  = Field(default=50, gt=0)
    allow_anonymous:        bool = True


class RoomsConfig(BaseModel):
    defaults:             RoomDefaults = Field(default_factory=RoomDefaults)
    min_code_length:      int          = Field(default=3, gt=0)
    max_code_length:      int          = Field(default=64, gt=0)
    idle_timeout_seconds: float        = Field(default=3600.0, gt=0)

    @model_validator(mode="after")
    def _check_code_bounds(self) -> "RoomsConfig":
        if self.max_code_length < self.min_code_length:
            raise ValueError("max_code_length must be >= min_code_length")
        return self


class PresenceConfig(BaseModel):
    inactive_after_seconds: float = Field(default=30.0, gt=0)
    away_after_seconds:     float = Field(default=300.0, gt=0)
    max_display_name:       int   = Field(default=32, gt=0)


class MessagesConfig(BaseModel):
    max_length:           int   = Field(default=500, gt=0)
    expiry_grace_seconds: float = Field(default=2.0, ge=0)


class ReaperConfig(BaseModel):
    enabled:          bool  = True
    interval_seconds: float = Field(default=300.0, gt=0)


class AppConfig(BaseModel):
    server:   ServerConfig   = Field(default_factory=ServerConfig)
    logging:  LoggingConfig  = Field(default_factory=LoggingConfig)
    rooms:    RoomsConfig    = Field(default_factory=RoomsConfig)
    presence: PresenceConfig = Field(default_factory=PresenceConfig)
    messages: MessagesConfig = Field(default_factory=MessagesConfig)
    reaper:   ReaperConfig   = Field(default_factory=ReaperConfig)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load *AppConfig* from YAML, falling back to defaults for missing keys."""
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))
    data = _load_yaml(Path(settings_path))

    config = AppConfig(**data)
    logger.info(
        "Settings loaded (server=%s:%s, reaper.enabled=%s, reaper.interval=%ss)",
        config.server.host,
        config.server.port,
        config.reaper.enabled,
        config.reaper.interval_seconds,
    )
    return config


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    return load_config()
