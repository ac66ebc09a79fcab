"""Inbound events and outbound messages exchanged with a channel."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    conversation_id: str = Field(min_length=1)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class TextMessage(_Event):
    """A plain text message typed by the user."""

    type: Literal["message"] = "message"
    text: str = ""


class AuthCallback(_Event):
    """Completion signal of an interactive sign-in (OAuth redirect, magic code or cancel)."""

    type: Literal["auth_callback"] = "auth_callback"
    token: str | None = None
    code: str | None = None
    declined: bool = False


class TimeoutEvent(_Event):
    """Synthetic event delivered by the sign-in sweeper."""

    type: Literal["timeout"] = "timeout"


class MembersAdded(_Event):
    """Conversation update announcing new members."""

    type: Literal["members_added"] = "members_added"
    members: list[str] = Field(default_factory=list)


InboundEvent = Annotated[TextMessage | AuthCallback | TimeoutEvent | MembersAdded, Field(discriminator="type")]

_INBOUND_ADAPTER: TypeAdapter[Any] = TypeAdapter(InboundEvent)


def parse_inbound(raw: InboundEvent | Mapping[str, Any]) -> InboundEvent:
    """Validate a mapping into one inbound event; events pass through unchanged."""

    if isinstance(raw, _Event):
        return raw  # type: ignore[return-value]
    payload = dict(raw)
    payload.setdefault("type", "message")
    return _INBOUND_ADAPTER.validate_python(payload)


class OutboundMessage(BaseModel):
    """Message to be delivered to the user of one conversation."""

    model_config = ConfigDict(frozen=True)

    conversation_id: str
    text: str
    kind: Literal["text", "signin"] = "text"
    payload: dict[str, Any] = Field(default_factory=dict)
