"""Websocket envelopes and the payload schemas of client events."""
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from core.schemas import CamelModel

Role = Literal["student", "instructor"]


class WsInbound(BaseModel):
    """Client -> server frame."""

    model_config = ConfigDict(extra="forbid")

    event: str
    data: dict[str, Any] = {}


class JoinEvent(CamelModel):
    model_config = ConfigDict(extra="forbid")

    user_type: Role
    user_id: str


class TypingEvent(CamelModel):
    model_config = ConfigDict(extra="forbid")

    conversation_id: str | None = None
    user_type: Role | None = None
    is_typing: bool = True


class RelayedMessage(CamelModel):
    """Message object pushed by ``instructor-message``/``student-message``.

    Broadcast as-is and never stored.
    """

    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    conversation_id: str | None = None
    sender: Role
    sender_user_id: str | None = None
    text: str = ""
    image: str | None = None
    timestamp: datetime | None = None
