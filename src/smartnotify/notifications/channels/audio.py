"""
Sound playback and text-to-speech through platform command-line tools.

Sound: afplay (macOS), paplay / aplay / ffplay (Linux), PowerShell
SoundPlayer (Windows). Speech engines are tried in order; when all of
them fail the fallback sound is played instead.
"""

from __future__ import annotations

import logging

from smartnotify.notifications.channel import SoundBackend, SpeechBackend
from smartnotify.notifications.channels.commands import available, platform_name, run_command

logger = logging.getLogger(__name__)

DEFAULT_ENGINES = ["say", "espeak", "sapi"]

_LINUX_PLAYERS = (
    ("paplay", []),
    ("aplay", ["-q"]),
    ("ffplay", ["-nodisp", "-autoexit", "-loglevel", "quiet"]),
)


class CommandSoundPlayer(SoundBackend):
    """Plays audio files by shelling out to the platform player."""

    name: str = "command-sound"

    def __init__(self, platform: str | None = None) -> None:
        self.platform = platform or platform_name()

    def build_command(self, path: str) -> list[str] | None:
        if self.platform == "darwin":
            return ["afplay", path]
        if self.platform == "win32":
            escaped = path.replace("'", "''")
            return [
                "powershell.exe",
                "-NoProfile",
                "-Command",
                f"(New-Object Media.SoundPlayer '{escaped}').PlaySync()",
            ]
        for program, extra in _LINUX_PLAYERS:
            if available(program):
                return [program, *extra, path]
        return None

    async def play(self, path: str, loops: int = 1) -> None:
        command = self.build_command(path)
        if command is None:
            logger.warning("No audio player found, cannot play %s", path)
            return
        for _ in range(max(1, loops)):
            if not await run_command(*command, timeout=30):
                logger.debug("Playback of %s failed", path)
                return


class CommandSpeech(SpeechBackend):
    """Speaks through say / espeak / SAPI, with display wake and volume hooks."""

    name: str = "command-speech"

    def __init__(
        self,
        *,
        engines: list[str] | None = None,
        voice: str = "",
        rate: int = 175,
        volume_level: int = 80,
        sound: SoundBackend | None = None,
        platform: str | None = None,
    ) -> None:
        self.engines = engines or list(DEFAULT_ENGINES)
        self.voice = voice
        self.rate = rate
        self.volume_level = max(0, min(100, volume_level))
        self.sound = sound
        self.platform = platform or platform_name()

    def engine_command(self, engine: str, text: str) -> list[str] | None:
        """Command line for `engine`, or None when it does not apply here."""
        if engine == "say":
            if self.platform != "darwin":
                return None
            command = ["say", "-r", str(self.rate)]
            if self.voice:
                command += ["-v", self.voice]
            return command + [text]
        if engine == "espeak":
            program = "espeak-ng" if available("espeak-ng") else "espeak"
            command = [program, "-s", str(self.rate)]
            if self.voice:
                command += ["-v", self.voice]
            return command + [text]
        if engine == "sapi":
            if self.platform != "win32":
                return None
            escaped = text.replace("'", "''")
            return [
                "powershell.exe",
                "-NoProfile",
                "-Command",
                "Add-Type -AssemblyName System.Speech;"
                "$s = New-Object System.Speech.Synthesis.SpeechSynthesizer;"
                f"$s.Speak('{escaped}')",
            ]
        logger.warning("Unknown TTS engine: %s", engine)
        return None

    async def speak(
        self,
        text: str,
        *,
        engine: str | None = None,
        fallback_sound: str | None = None,
    ) -> bool:
        engines = [engine] if engine else self.engines
        for name in engines:
            command = self.engine_command(name, text)
            if command is None or not available(command[0]):
                continue
            logger.debug("Speaking via %s: %r", name, text)
            if await run_command(*command, timeout=60):
                return True
            logger.debug("TTS engine %s failed, trying next", name)

        if fallback_sound and self.sound is not None:
            logger.info("All TTS engines failed, playing fallback sound")
            await self.sound.play(fallback_sound)
            return True
        return False

    async def wake_display(self) -> None:
        if self.platform == "darwin":
            await run_command("caffeinate", "-u", "-t", "1", timeout=5)
        elif self.platform == "linux" and available("xset"):
            await run_command("xset", "dpms", "force", "on", timeout=5)

    async def force_volume(self) -> None:
        if self.platform == "darwin":
            await run_command(
                "osascript", "-e", f"set volume output volume {self.volume_level}", timeout=5
            )
        elif self.platform == "linux" and available("pactl"):
            await run_command(
                "pactl", "set-sink-volume", "@DEFAULT_SINK@", f"{self.volume_level}%", timeout=5
            )
