"""Per-turn context handed to dialogs and waterfall steps."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from stackflow.dialogs.outcomes import BeginChild, Continue, End, Wait
from stackflow.dialogs.prompts import PromptOptions
from stackflow.dialogs.results import NO_RESULT, BoolResult, ChoiceResult, StepResult, TextResult, TokenResult
from stackflow.events import OutboundMessage

if TYPE_CHECKING:
    from stackflow.auth.models import TokenResponse
    from stackflow.auth.provider import TokenProvider
    from stackflow.config import Settings
    from stackflow.events import InboundEvent
    from stackflow.graph.client import GraphClient


@dataclass(frozen=True)
class Services:
    """External collaborators reachable from inside a turn."""

    settings: Settings
    token_provider: TokenProvider
    graph_client: Callable[[str], GraphClient]


class TurnContext:
    """One inbound event plus the outbound messages produced while handling it.

    Outbound messages are buffered; the application delivers them only after
    the turn's dialog state has been written.
    """

    def __init__(self, event: InboundEvent, services: Services, *, now: datetime | None = None) -> None:
        self.event = event
        self.services = services
        self.now = now or datetime.now(UTC)
        self._outbounds: list[OutboundMessage] = []

    @property
    def conversation_id(self) -> str:
        return self.event.conversation_id

    @property
    def outbounds(self) -> list[OutboundMessage]:
        return list(self._outbounds)

    def send(self, text: str, *, kind: str = "text", payload: dict[str, Any] | None = None) -> OutboundMessage:
        message = OutboundMessage(
            conversation_id=self.conversation_id,
            text=text,
            kind=kind,  # type: ignore[arg-type]
            payload=payload or {},
        )
        self._outbounds.append(message)
        return message


@dataclass
class StepContext[V: BaseModel]:
    """What one waterfall step sees: the previous result and its frame's values."""

    turn: TurnContext
    flow: str
    step: str
    index: int
    result: StepResult
    values: V
    options: Any = None

    def send(self, text: str) -> None:
        self.turn.send(text)

    def token(self) -> TokenResponse | None:
        """Token handed over by a sign-in prompt, or None when sign-in failed."""

        if isinstance(self.result, TokenResult) and self.result.response.token:
            return self.result.response
        return None

    def confirmed(self) -> bool:
        return isinstance(self.result, BoolResult) and self.result.value

    def text(self) -> str | None:
        if isinstance(self.result, TextResult):
            return self.result.text
        if isinstance(self.result, ChoiceResult):
            return self.result.value
        return None

    def begin(self, flow: str, options: Any = None) -> BeginChild:
        return BeginChild(flow=flow, options=options)

    def prompt(self, flow: str, text: str, *, retry_prompt: str | None = None, choices: list[str] | None = None) -> BeginChild:
        return BeginChild(flow=flow, options=PromptOptions(prompt=text, retry_prompt=retry_prompt, choices=choices or []))

    def next(self, value: StepResult = NO_RESULT) -> Continue:
        return Continue(value=value)

    def wait(self) -> Wait:
        """Suspend; the next inbound event is handed to the following step."""

        return Wait()

    def end(self, value: StepResult = NO_RESULT) -> End:
        return End(value=value)
