"""Input prompts: ask once, re-ask on unrecognized input, end with the recognized value."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, Field

from stackflow.dialogs.base import Dialog, FrameValues
from stackflow.dialogs.outcomes import DialogOutcome, End, Wait
from stackflow.dialogs.results import BoolResult, ChoiceResult, StepResult, TextResult
from stackflow.events import TextMessage

if TYPE_CHECKING:
    from stackflow.dialogs.context import TurnContext
    from stackflow.dialogs.state import StackFrame
    from stackflow.events import InboundEvent

YES_WORDS = frozenset({"yes", "y", "yeah", "yep", "sure", "ok", "okay", "true"})
NO_WORDS = frozenset({"no", "n", "nope", "nah", "false"})


class PromptOptions(BaseModel):
    prompt: str = ""
    retry_prompt: str | None = None
    choices: list[str] = Field(default_factory=list)


class PromptValues(FrameValues):
    prompt: str = ""
    retry_prompt: str | None = None
    choices: list[str] = Field(default_factory=list)
    attempts: int = 0


class Prompt(Dialog):
    """Base class of text-driven prompts."""

    values_model: ClassVar[type[FrameValues]] = PromptValues
    default_choices: ClassVar[tuple[str, ...]] = ()

    async def begin(self, turn: TurnContext, frame: StackFrame, options: Any = None) -> DialogOutcome:
        if not isinstance(options, PromptOptions):
            options = PromptOptions.model_validate(options or {})
        state = PromptValues(
            prompt=options.prompt,
            retry_prompt=options.retry_prompt,
            choices=options.choices or list(self.default_choices),
        )
        self.store_values(frame, state)
        self._send_prompt(turn, state, retry=False)
        return Wait()

    async def on_event(self, turn: TurnContext, frame: StackFrame, event: InboundEvent) -> DialogOutcome:
        if not isinstance(event, TextMessage):
            return Wait()
        state = PromptValues.model_validate(frame.values)
        result = self.recognize(event.text, state)
        if result is not None:
            return End(value=result)
        state.attempts += 1
        self.store_values(frame, state)
        self._send_prompt(turn, state, retry=True)
        return Wait()

    async def resume(self, turn: TurnContext, frame: StackFrame, result: StepResult) -> DialogOutcome:
        state = PromptValues.model_validate(frame.values)
        self._send_prompt(turn, state, retry=False)
        return Wait()

    @abstractmethod
    def recognize(self, text: str, state: PromptValues) -> StepResult | None:
        """Return the recognized value, or None to re-prompt."""

    def _send_prompt(self, turn: TurnContext, state: PromptValues, *, retry: bool) -> None:
        text = state.retry_prompt if retry and state.retry_prompt else state.prompt
        if not text:
            return
        payload = {"choices": list(state.choices)} if state.choices else None
        turn.send(text, payload=payload)


class TextPrompt(Prompt):
    def recognize(self, text: str, state: PromptValues) -> StepResult | None:
        return TextResult(text=text)


class ConfirmPrompt(Prompt):
    default_choices = ("Yes", "No")

    def recognize(self, text: str, state: PromptValues) -> StepResult | None:
        normalized = text.strip().lower().rstrip(".!")
        if normalized in YES_WORDS or normalized == "1":
            return BoolResult(value=True)
        if normalized in NO_WORDS or normalized == "2":
            return BoolResult(value=False)
        return None


class ChoicePrompt(Prompt):
    def recognize(self, text: str, state: PromptValues) -> StepResult | None:
        normalized = text.strip().casefold()
        if normalized.isdigit():
            index = int(normalized) - 1
            if 0 <= index < len(state.choices):
                return ChoiceResult(value=state.choices[index], index=index)
            return None
        for index, choice in enumerate(state.choices):
            if choice.casefold() == normalized:
                return ChoiceResult(value=choice, index=index)
        return None
