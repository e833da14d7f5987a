"""
Host events and the normalized form the notification system consumes.

Defines the notification types, the canonical event kinds, and
`normalize_event()`, which turns the property shapes emitted by the
different host SDK versions into a single `HostEvent`.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    IDLE = "idle"
    PERMISSION = "permission"
    QUESTION = "question"
    ERROR = "error"


class EventKind(str, Enum):
    MESSAGE_UPDATED = "message_updated"
    PERMISSION_REQUESTED = "permission_requested"
    PERMISSION_REPLIED = "permission_replied"
    QUESTION_REQUESTED = "question_requested"
    QUESTION_REPLIED = "question_replied"
    QUESTION_REJECTED = "question_rejected"
    SESSION_IDLE = "session_idle"
    SESSION_ERROR = "session_error"
    SESSION_CREATED = "session_created"


# Host type string → canonical kind. Both permission request names are
# in use depending on the SDK version.
_HOST_TYPES: dict[str, EventKind] = {
    "message.updated": EventKind.MESSAGE_UPDATED,
    "permission.updated": EventKind.PERMISSION_REQUESTED,
    "permission.asked": EventKind.PERMISSION_REQUESTED,
    "permission.replied": EventKind.PERMISSION_REPLIED,
    "question.asked": EventKind.QUESTION_REQUESTED,
    "question.replied": EventKind.QUESTION_REPLIED,
    "question.rejected": EventKind.QUESTION_REJECTED,
    "session.idle": EventKind.SESSION_IDLE,
    "session.error": EventKind.SESSION_ERROR,
    "session.created": EventKind.SESSION_CREATED,
}


class HostEvent(BaseModel):
    """A single host event in canonical shape."""

    kind: EventKind
    host_type: str = ""
    session_id: str = ""

    # permission / question requests and replies
    request_id: Optional[str] = None
    reply: str = ""
    question_count: int = 1

    # message.updated
    message_id: Optional[str] = None
    role: str = ""
    created_at: Optional[float] = None  # epoch seconds

    error: str = ""
    received_at: float = Field(default_factory=time.time)


def _first(props: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = props.get(key)
        if value:
            return value
    return None


def _placeholder_id() -> str:
    return f"unknown-{int(time.time() * 1000)}"


def _epoch_seconds(value: Any) -> Optional[float]:
    """Host timestamps are epoch milliseconds; bare seconds are accepted too."""
    if not value:
        return None
    try:
        ts = float(value)
    except (TypeError, ValueError):
        return None
    return ts / 1000 if ts > 1e11 else ts


def _error_text(error: Any) -> str:
    if not error:
        return ""
    if isinstance(error, dict):
        data = error.get("data")
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return str(error.get("message") or error.get("name") or "")
    return str(error)


def normalize_event(event: dict[str, Any] | HostEvent) -> HostEvent | None:
    """
    Convert a raw host event (``{"type": ..., "properties": {...}}``) to a
    `HostEvent`.

    Returns None for event types the notification system does not handle.
    Requests without an identifier are given a placeholder id so that
    batching and counting keep working.
    """
    if isinstance(event, HostEvent):
        return event

    host_type = str(event.get("type") or "")
    kind = _HOST_TYPES.get(host_type)
    if kind is None:
        return None

    props = event.get("properties") or {}
    session_id = str(props.get("sessionID") or "")

    if kind == EventKind.MESSAGE_UPDATED:
        info = props.get("info") or {}
        created = (info.get("time") or {}).get("created")
        return HostEvent(
            kind=kind,
            host_type=host_type,
            session_id=session_id or str(info.get("sessionID") or ""),
            message_id=info.get("id") or None,
            role=str(info.get("role") or ""),
            created_at=_epoch_seconds(created),
        )

    if kind in (EventKind.PERMISSION_REQUESTED, EventKind.QUESTION_REQUESTED):
        if kind == EventKind.PERMISSION_REQUESTED:
            request_id = _first(props, "id", "permissionID", "requestID")
        else:
            request_id = _first(props, "id", "requestID")
        if not request_id:
            request_id = _placeholder_id()
            logger.warning(
                "%s without an id (properties: %s), using %s",
                host_type, ", ".join(sorted(props)), request_id,
            )
        questions = props.get("questions")
        count = len(questions) if isinstance(questions, list) else 1
        return HostEvent(
            kind=kind,
            host_type=host_type,
            session_id=session_id,
            request_id=str(request_id),
            question_count=max(1, count),
        )

    if kind in (
        EventKind.PERMISSION_REPLIED,
        EventKind.QUESTION_REPLIED,
        EventKind.QUESTION_REJECTED,
    ):
        if kind == EventKind.PERMISSION_REPLIED:
            request_id = _first(props, "permissionID", "requestID")
        else:
            request_id = _first(props, "requestID", "id")
        reply = props.get("response") or props.get("reply") or ""
        if kind == EventKind.QUESTION_REJECTED:
            reply = "rejected"
        return HostEvent(
            kind=kind,
            host_type=host_type,
            session_id=session_id,
            request_id=str(request_id) if request_id else None,
            reply=str(reply),
        )

    if kind == EventKind.SESSION_CREATED and not session_id:
        session_id = str((props.get("info") or {}).get("id") or "")

    return HostEvent(
        kind=kind,
        host_type=host_type,
        session_id=session_id,
        error=_error_text(props.get("error")),
    )
