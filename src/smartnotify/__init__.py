"""SmartNotify: voice, sound and desktop alerts for coding-agent sessions."""

__version__ = "0.4.0"
