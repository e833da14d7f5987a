"""
Configuration models for the notification system.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from smartnotify.notifications.events import NotificationType


class NotificationMode(str, Enum):
    SOUND_FIRST = "sound-first"  # sound now, speech only as a reminder
    TTS_FIRST = "tts-first"      # speak now instead of playing a sound
    BOTH = "both"                # sound and speech now
    SOUND_ONLY = "sound-only"    # no immediate speech


class MessagePool(BaseModel):
    """Messages for one count class; `multiple` entries use a {count} placeholder."""

    single: list[str] = []
    multiple: list[str] = []


class TypeMessages(BaseModel):
    immediate: MessagePool = Field(default_factory=MessagePool)
    reminder: MessagePool = Field(default_factory=MessagePool)


def _pool(single: list[str], multiple: list[str] | None = None) -> MessagePool:
    return MessagePool(single=single, multiple=multiple or [])


class MessagesConfig(BaseModel):
    """Static message pools, one entry per notification type."""

    idle: TypeMessages = TypeMessages(
        immediate=_pool([
            "All done! Your task has been completed successfully.",
            "Hey there! I finished working on your request.",
            "Task complete! Ready for your review whenever you are.",
            "Good news! Everything is done and ready for you.",
            "Finished! Let me know if you need anything else.",
        ]),
        reminder=_pool([
            "Hey, are you still there? Your task has been waiting for review.",
            "Just a gentle reminder, I finished your request a while ago.",
            "Hello? I completed your task. Please take a look when you can.",
            "Still waiting for you! The work is done and ready for review.",
            "Knock knock! Your completed task is patiently waiting for you.",
        ]),
    )
    permission: TypeMessages = TypeMessages(
        immediate=_pool(
            [
                "Attention please! I need your permission to continue.",
                "Hey! Quick approval needed to proceed with the task.",
                "Heads up! There is a permission request waiting for you.",
                "Excuse me! I need your authorization before I can continue.",
                "Permission required! Please review and approve when ready.",
            ],
            [
                "Attention please! There are {count} permission requests waiting for your approval.",
                "Hey! {count} permissions need your approval to continue.",
                "Heads up! You have {count} pending permission requests.",
            ],
        ),
        reminder=_pool(
            [
                "Hey! I still need your permission to continue. Please respond!",
                "Reminder: There is a pending permission request. I cannot proceed without you.",
                "Hello? I am waiting for your approval. This is getting urgent!",
                "Please check your screen! I really need your permission to move forward.",
                "Still waiting for authorization! The task is on hold until you respond.",
            ],
            [
                "Hey! I still need your approval for {count} permissions. Please respond!",
                "Reminder: There are {count} pending permission requests. I cannot proceed without you.",
                "Hello? I am waiting for your approval on {count} items. This is getting urgent!",
            ],
        ),
    )
    question: TypeMessages = TypeMessages(
        immediate=_pool(
            [
                "Hey! I have a question for you. Please check your screen.",
                "Attention! I need your input to continue.",
                "Quick question! Please take a look when you have a moment.",
                "I need some clarification. Could you please respond?",
                "Question time! Your input is needed to proceed.",
            ],
            [
                "Hey! I have {count} questions for you. Please check your screen.",
                "Attention! I need your input on {count} questions to continue.",
                "{count} questions need your attention. Please take a look!",
            ],
        ),
        reminder=_pool(
            [
                "Hey! I am still waiting for your answer. Please check the questions!",
                "Reminder: There is a question waiting for your response.",
                "Hello? I need your input to continue. Please respond when you can.",
                "Still waiting for your answer! The task is on hold.",
                "Your input is needed! Please check the pending question.",
            ],
            [
                "Hey! I am still waiting for answers to {count} questions. Please respond!",
                "Reminder: There are {count} questions waiting for your response.",
                "Hello? I need your input on {count} questions. Please respond when you can.",
            ],
        ),
    )
    error: TypeMessages = TypeMessages(
        immediate=_pool(
            [
                "Oops! Something went wrong. Please check for errors.",
                "Alert! The agent encountered an error and needs your attention.",
                "Error detected! Please review the issue when you can.",
                "Houston, we have a problem! An error occurred during the task.",
                "Heads up! There was an error that requires your attention.",
            ],
            [
                "Oops! There are {count} errors that need your attention.",
                "Alert! The agent encountered {count} errors. Please review.",
                "{count} errors detected! Please check when you can.",
            ],
        ),
        reminder=_pool(
            [
                "Hey! There is still an error waiting for your attention.",
                "Reminder: An error occurred and has not been addressed yet.",
                "The agent is stuck! Please check the error when you can.",
                "Still waiting! That error needs your attention.",
                "Don't forget! There is an unresolved error in your session.",
            ],
            [
                "Hey! There are still {count} errors waiting for your attention.",
                "Reminder: {count} errors occurred and have not been addressed yet.",
                "The agent is stuck on {count} errors! Please check when you can.",
            ],
        ),
    )

    def for_type(self, type_: NotificationType) -> TypeMessages:
        return getattr(self, type_.value)


_DEFAULT_PROMPTS = {
    "idle": "Generate a single brief, friendly notification sentence (max 15 words) saying a coding task is complete. Make it encouraging and warm. Output only the message, no quotes.",
    "idle_reminder": "Generate a single brief, gentle reminder sentence (max 15 words) that a completed coding task is waiting for review. Be slightly more insistent. Output only the message, no quotes.",
    "permission": "Generate a single brief, urgent but friendly sentence (max 15 words) asking the user to approve a permission request. Output only the message, no quotes.",
    "permission_reminder": "Generate a single brief, urgent reminder sentence (max 15 words) that permission approval is still needed. Convey importance. Output only the message, no quotes.",
    "question": "Generate a single brief, polite sentence (max 15 words) saying the assistant has a question and needs user input. Output only the message, no quotes.",
    "question_reminder": "Generate a single brief, gentle reminder sentence (max 15 words) that a question is still waiting for an answer. Output only the message, no quotes.",
    "error": "Generate a single brief, calm but alert sentence (max 15 words) saying an error occurred and needs attention. Output only the message, no quotes.",
    "error_reminder": "Generate a single brief, urgent reminder sentence (max 15 words) that an error still needs attention. Convey urgency. Output only the message, no quotes.",
}


class AIConfig(BaseModel):
    """OpenAI-compatible endpoint used to generate notification text."""

    enabled: bool = False
    endpoint: str = "http://localhost:11434/v1"
    model: str = "llama3"
    api_key: str = ""
    timeout: float = 15.0  # seconds
    fallback_to_static: bool = True
    context_aware: bool = False
    min_length: int = 5
    max_length: int = 200
    prompts: dict[str, str] = Field(default_factory=lambda: dict(_DEFAULT_PROMPTS))


class WebhookConfig(BaseModel):
    """Discord-style webhook delivery."""

    url: str = ""
    username: str = "SmartNotify"
    events: list[str] = ["idle", "permission", "question", "error"]
    mention_on_permission: bool = False
    timeout: float = 10.0  # seconds


class NotifyConfig(BaseModel):
    """Every tunable of the notification core."""

    model_config = ConfigDict(validate_assignment=True)

    enabled: bool = True
    notification_mode: NotificationMode = NotificationMode.SOUND_FIRST

    enable_sound: bool = True
    enable_tts: bool = True
    enable_toast: bool = True
    enable_desktop_notification: bool = False
    enable_webhook: bool = False

    enable_idle_notification: bool = True
    enable_permission_notification: bool = True
    enable_question_notification: bool = True
    enable_error_notification: bool = True

    enable_tts_reminder: bool = True
    enable_idle_reminder: bool = True
    enable_permission_reminder: bool = True
    enable_question_reminder: bool = True
    enable_error_reminder: bool = True

    tts_reminder_delay_seconds: float = 30
    idle_reminder_delay_seconds: Optional[float] = 30
    permission_reminder_delay_seconds: Optional[float] = 20
    question_reminder_delay_seconds: Optional[float] = 25
    error_reminder_delay_seconds: Optional[float] = 20

    enable_follow_up_reminders: bool = True
    max_follow_up_reminders: int = 3
    reminder_backoff_multiplier: float = 1.5

    permission_batch_window_ms: int = 800
    question_batch_window_ms: int = 800
    idle_debounce_ms: int = 5000

    idle_sound: str = "assets/Soft-high-tech-notification-sound-effect.mp3"
    permission_sound: str = "assets/Machine-alert-beep-sound-effect.mp3"
    question_sound: str = "assets/Machine-alert-beep-sound-effect.mp3"
    error_sound: str = "assets/Machine-alert-beep-sound-effect.mp3"
    max_sound_loops: int = 3
    sound_theme_dir: str = ""
    randomize_sound_from_theme: bool = True
    per_project_sounds: bool = False
    project_sound_seed: int = 0

    desktop_notification_timeout: int = 5  # seconds
    show_project_in_notification: bool = True

    messages: MessagesConfig = Field(default_factory=MessagesConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)

    def notification_enabled(self, type_: NotificationType) -> bool:
        return getattr(self, f"enable_{type_.value}_notification")

    def reminder_enabled(self, type_: NotificationType) -> bool:
        return self.enable_tts_reminder and getattr(self, f"enable_{type_.value}_reminder")

    def reminder_delay(self, type_: NotificationType) -> float:
        """Per-type reminder delay in seconds, falling back to the global one."""
        delay = getattr(self, f"{type_.value}_reminder_delay_seconds")
        if delay is None or delay <= 0:
            delay = self.tts_reminder_delay_seconds
        return float(delay)

    def batch_window(self, type_: NotificationType) -> float:
        """Batch debounce window in seconds."""
        if type_ == NotificationType.QUESTION:
            return self.question_batch_window_ms / 1000
        return self.permission_batch_window_ms / 1000

    def sound_for(self, type_: NotificationType) -> str:
        return getattr(self, f"{type_.value}_sound")

    @property
    def speaks_immediately(self) -> bool:
        return self.notification_mode in (NotificationMode.TTS_FIRST, NotificationMode.BOTH)

    @property
    def plays_sound_immediately(self) -> bool:
        return self.notification_mode != NotificationMode.TTS_FIRST
