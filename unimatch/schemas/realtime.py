"""
UniMatch — WebSocket frame schemas.

Inbound frames are a discriminated union on ``type``.  Outbound frames are
plain dicts built by the helpers at the bottom of this module so that the
connection manager can ``send_json`` them directly.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field, TypeAdapter, ValidationError

from unimatch.schemas.base import CamelModel


class SendMessageFrame(CamelModel):
    type: Literal["send_message"]
    match_id: str = Field(min_length=1)
    content: str


class MarkReadFrame(CamelModel):
    type: Literal["mark_read"]
    match_id: str = Field(min_length=1)


class TypingFrame(CamelModel):
    type: Literal["typing"]
    match_id: str = Field(min_length=1)
    is_typing: bool = True


class PingFrame(CamelModel):
    type: Literal["ping"]


InboundFrame = Annotated[
    Union[SendMessageFrame, MarkReadFrame, TypingFrame, PingFrame],
    Field(discriminator="type"),
]

INBOUND_TYPES = frozenset({"send_message", "mark_read", "typing", "ping"})

_inbound_adapter: TypeAdapter[InboundFrame] = TypeAdapter(InboundFrame)


class FrameError(ValueError):
    """An inbound frame that cannot be dispatched."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def parse_frame(raw: str | bytes | None) -> InboundFrame:
    """Decode and validate one inbound frame, text or UTF-8 binary.

    Raises ``FrameError`` with code ``invalid_frame`` for malformed JSON or
    missing fields and ``unknown_type`` for a ``type`` nobody handles.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        raise FrameError("invalid_frame", "Frame is not valid JSON.") from None

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise FrameError("invalid_frame", "Frame must be an object with a 'type'.")

    if data["type"] not in INBOUND_TYPES:
        raise FrameError("unknown_type", f"Unknown frame type {data['type']!r}.")

    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in e["loc"][1:]) for e in exc.errors())
        raise FrameError("invalid_frame", f"Invalid fields: {fields}.") from None


# ── Outbound frames ──────────────────────────────────────────────────────────

def connection_frame(user_id: str, is_admin: bool) -> dict[str, Any]:
    return {
        "type": "connection",
        "message": "Connected successfully",
        "userId": user_id,
        "isAdmin": is_admin,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def error_frame(code: str, message: str, match_id: Optional[str] = None) -> dict[str, Any]:
    frame: dict[str, Any] = {"type": "error", "code": code, "message": message}
    if match_id is not None:
        frame["matchId"] = match_id
    return frame


def new_message_frame(message: dict[str, Any]) -> dict[str, Any]:
    return {"type": "new_message", "message": message}


def message_sent_frame(message: dict[str, Any]) -> dict[str, Any]:
    return {"type": "message_sent", "messageId": message["id"], "message": message}


def messages_read_frame(match_id: str, read_by: str) -> dict[str, Any]:
    return {"type": "messages_read", "matchId": match_id, "readBy": read_by}


def typing_frame(match_id: str, user_id: str, is_typing: bool) -> dict[str, Any]:
    return {"type": "typing", "matchId": match_id, "userId": user_id, "isTyping": is_typing}


def pong_frame(user_id: str) -> dict[str, Any]:
    return {"type": "pong", "userId": user_id}


def notification_frame(kind: str, **payload: Any) -> dict[str, Any]:
    return {"type": "notification", "kind": kind, **payload}
