"""
Core configuration and utilities for SmartNotify.

Provides:
- Path constants (SMARTNOTIFY_HOME, SMARTNOTIFY_CONFIG_FILE, SMARTNOTIFY_LOGS_DIR)
- Configuration models (SmartNotifyConfig, AudioConfig)
- Config loading/saving and debug-log setup
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from smartnotify.notifications.config import NotifyConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Path constants
# ---------------------------------------------------------------------------

SMARTNOTIFY_HOME: Path = Path(
    os.environ.get("SMARTNOTIFY_CONFIG_DIR") or Path.home() / ".config" / "smartnotify"
)
SMARTNOTIFY_CONFIG_FILE: Path = SMARTNOTIFY_HOME / "config.yaml"
SMARTNOTIFY_LOGS_DIR: Path = SMARTNOTIFY_HOME / "logs"
DEBUG_LOG_NAME = "smartnotify-debug.log"


# ---------------------------------------------------------------------------
# Configuration models
# ---------------------------------------------------------------------------


class AudioConfig(BaseModel):
    """Local speech and playback settings."""

    tts_engines: list[str] = ["say", "espeak", "sapi"]
    voice: str = ""
    rate: int = 175  # words per minute
    wake_monitor: bool = True
    force_volume: bool = False
    volume_level: int = 80  # percent


class SmartNotifyConfig(BaseModel):
    """Main configuration for SmartNotify."""

    project_name: str = ""
    debug_log: bool = False
    sound_dir: str = ""
    audio: AudioConfig = Field(default_factory=AudioConfig)
    notifications: NotifyConfig = Field(default_factory=NotifyConfig)


# ---------------------------------------------------------------------------
# Config loading/saving
# ---------------------------------------------------------------------------


def load_config(path: Optional[Path] = None) -> SmartNotifyConfig:
    """Load configuration from YAML file, or return defaults."""
    path = path or SMARTNOTIFY_CONFIG_FILE
    if path.exists():
        try:
            data = yaml.safe_load(path.read_text()) or {}
            return SmartNotifyConfig(**data)
        except (yaml.YAMLError, ValidationError, TypeError) as exc:
            logger.warning("Ignoring invalid config %s: %s", path, exc)
    return SmartNotifyConfig()


def save_config(config: SmartNotifyConfig, path: Optional[Path] = None) -> Path:
    """Save configuration to YAML file."""
    path = path or SMARTNOTIFY_CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.dump(config.model_dump(mode="json"), default_flow_style=False, sort_keys=False)
    )
    return path


def setup_logging(config: SmartNotifyConfig, logs_dir: Optional[Path] = None) -> Optional[Path]:
    """Attach a debug file handler to the ``smartnotify`` logger when enabled."""
    if not config.debug_log:
        return None
    logs_dir = logs_dir or SMARTNOTIFY_LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = Path(os.path.abspath(logs_dir / DEBUG_LOG_NAME))

    root = logging.getLogger("smartnotify")
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_file:
            return log_file
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    return log_file


__all__ = [
    "SMARTNOTIFY_HOME",
    "SMARTNOTIFY_CONFIG_FILE",
    "SMARTNOTIFY_LOGS_DIR",
    "AudioConfig",
    "SmartNotifyConfig",
    "load_config",
    "save_config",
    "setup_logging",
    "NotifyConfig",
]
