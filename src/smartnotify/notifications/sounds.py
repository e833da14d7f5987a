"""
Sound file resolution: sound themes, per-project sounds, and relative
paths under the config directory.
"""

from __future__ import annotations

import hashlib
import logging
import random
from pathlib import Path
from typing import Optional

from smartnotify.notifications.config import NotifyConfig
from smartnotify.notifications.events import NotificationType

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {".mp3", ".wav", ".ogg", ".m4a", ".flac"}
PROJECT_SOUND_COUNT = 6


def list_theme_sounds(theme_dir: Path, event_type: str) -> list[Path]:
    """Audio files in `<theme_dir>/<event_type>/`, sorted by name."""
    sub_dir = theme_dir / event_type
    if not sub_dir.is_dir():
        return []
    return sorted(
        p for p in sub_dir.iterdir()
        if p.is_file() and p.suffix.lower() in AUDIO_EXTENSIONS
    )


class SoundResolver:
    """Maps a notification type to an existing sound file, or None."""

    def __init__(
        self,
        config: NotifyConfig,
        base_dir: Path,
        project_dir: str = "",
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.base_dir = base_dir
        self.project_dir = project_dir
        self._rng = rng or random.Random()
        self._project_sound: Optional[str] = None

    def _absolute(self, path: str) -> Path:
        p = Path(path).expanduser()
        return p if p.is_absolute() else self.base_dir / p

    def theme_sound(self, type_: NotificationType) -> Optional[Path]:
        if not self.config.sound_theme_dir:
            return None
        theme_dir = self._absolute(self.config.sound_theme_dir)
        if not theme_dir.is_dir():
            logger.debug("Theme directory not found: %s", theme_dir)
            return None
        sounds = list_theme_sounds(theme_dir, type_.value)
        if not sounds:
            logger.debug("No sounds for %s in theme %s", type_.value, theme_dir)
            return None
        if self.config.randomize_sound_from_theme:
            return self._rng.choice(sounds)
        return sounds[0]

    def project_sound(self) -> Optional[str]:
        """Stable per-project choice among assets/ding1..6.mp3."""
        if not self.config.per_project_sounds or not self.project_dir:
            return None
        if self._project_sound is None:
            digest = hashlib.md5(
                f"{self.project_dir}{self.config.project_sound_seed}".encode()
            ).hexdigest()
            index = int(digest[:8], 16) % PROJECT_SOUND_COUNT + 1
            self._project_sound = f"assets/ding{index}.mp3"
            logger.debug("Project %s assigned %s", self.project_dir, self._project_sound)
        return self._project_sound

    def resolve(self, type_: NotificationType, configured: Optional[str] = None) -> Optional[str]:
        themed = self.theme_sound(type_)
        if themed is not None:
            return str(themed)

        candidates = [configured or self.config.sound_for(type_)]
        if type_ == NotificationType.IDLE:
            candidates.insert(0, self.project_sound())
        for candidate in candidates:
            if not candidate:
                continue
            path = self._absolute(candidate)
            if path.is_file():
                return str(path)
            logger.debug("Sound file not found: %s", path)
        return None
