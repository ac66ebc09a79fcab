"""Framework-neutral result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from stackflow.events import OutboundMessage

type TurnStatus = Literal["suspended", "completed", "reset", "welcome", "ignored"]


@dataclass(frozen=True)
class TurnResult:
    """Result of one complete inbound turn."""

    conversation_id: str
    status: TurnStatus
    depth: int
    outbounds: list[OutboundMessage] = field(default_factory=list)

    @property
    def texts(self) -> list[str]:
        return [message.text for message in self.outbounds]
