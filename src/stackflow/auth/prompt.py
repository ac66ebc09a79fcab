"""Sign-in prompt: the dialog that turns the token capability into a step result."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, ClassVar

from loguru import logger

from stackflow.auth.models import Declined, SignInRequired, TokenOutcome, TokenResponse
from stackflow.dialogs.base import Dialog, FrameValues
from stackflow.dialogs.outcomes import DialogOutcome, End, Wait
from stackflow.dialogs.results import NO_RESULT, TokenResult
from stackflow.errors import AuthDeclined
from stackflow.events import TextMessage, TimeoutEvent

if TYPE_CHECKING:
    from stackflow.dialogs.context import TurnContext
    from stackflow.dialogs.state import StackFrame
    from stackflow.events import InboundEvent

DEFAULT_TIMEOUT_SECONDS = 300


class OAuthPromptValues(FrameValues):
    expires_at: datetime | None = None


class OAuthPrompt(Dialog):
    """Ends with a ``TokenResult`` on success and ``NoResult`` on decline or timeout."""

    values_model: ClassVar[type[FrameValues]] = OAuthPromptValues

    def __init__(
        self,
        name: str,
        *,
        connection_name: str,
        title: str = "Sign In",
        text: str = "Please Sign In",
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(name)
        self.connection_name = connection_name
        self.title = title
        self.text = text
        self.timeout = timedelta(seconds=timeout_seconds)

    async def begin(self, turn: TurnContext, frame: StackFrame, options: Any = None) -> DialogOutcome:
        self.store_values(frame, OAuthPromptValues(expires_at=turn.now + self.timeout))
        outcome = await self._request(turn, turn.event)
        if isinstance(outcome, SignInRequired):
            self._send_sign_in(turn, outcome)
            return Wait()
        return self._finish(outcome)

    async def on_event(self, turn: TurnContext, frame: StackFrame, event: InboundEvent) -> DialogOutcome:
        values = OAuthPromptValues.model_validate(frame.values)
        if isinstance(event, TimeoutEvent) or self.is_expired(frame, turn.now):
            logger.info("signin.expired connection={} expires_at={}", self.connection_name, values.expires_at)
            return End(value=NO_RESULT)

        outcome = await self._request(turn, event)
        if isinstance(outcome, SignInRequired):
            if isinstance(event, TextMessage):
                self._send_sign_in(turn, outcome)
            return Wait()
        return self._finish(outcome)

    def is_expired(self, frame: StackFrame, now: datetime) -> bool:
        values = OAuthPromptValues.model_validate(frame.values)
        return values.expires_at is not None and values.expires_at <= now

    async def _request(self, turn: TurnContext, event: InboundEvent) -> TokenOutcome:
        try:
            return await turn.services.token_provider.request_token(turn.conversation_id, self.connection_name, event)
        except AuthDeclined as exc:
            return Declined(str(exc) or type(exc).__name__)

    def _finish(self, outcome: TokenOutcome) -> DialogOutcome:
        if isinstance(outcome, TokenResponse) and outcome.token:
            return End(value=TokenResult(response=outcome))
        reason = outcome.reason if isinstance(outcome, Declined) else "empty token"
        logger.info("signin.declined connection={} reason={}", self.connection_name, reason)
        return End(value=NO_RESULT)

    def _send_sign_in(self, turn: TurnContext, request: SignInRequired) -> None:
        turn.send(
            self.text,
            kind="signin",
            payload={
                "title": self.title,
                "connection_name": self.connection_name,
                "sign_in_link": request.sign_in_link,
            },
        )
