"""Dialog contract shared by waterfall flows and prompts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict

from stackflow.dialogs.outcomes import DialogOutcome, End

if TYPE_CHECKING:
    from stackflow.dialogs.context import TurnContext
    from stackflow.dialogs.results import StepResult
    from stackflow.dialogs.state import StackFrame
    from stackflow.events import InboundEvent


class FrameValues(BaseModel):
    """Closed record persisted in a frame's ``values``. Subclass per flow."""

    model_config = ConfigDict(extra="forbid")


class Dialog(ABC):
    """A named flow that can sit on the dialog stack.

    ``begin`` runs when the frame is pushed, ``on_event`` when an inbound event
    reaches the frame while it is on top, and ``resume`` when a child frame
    ended and handed back its value.
    """

    values_model: ClassVar[type[FrameValues]] = FrameValues

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def begin(self, turn: TurnContext, frame: StackFrame, options: Any = None) -> DialogOutcome: ...

    @abstractmethod
    async def on_event(self, turn: TurnContext, frame: StackFrame, event: InboundEvent) -> DialogOutcome: ...

    async def resume(self, turn: TurnContext, frame: StackFrame, result: StepResult) -> DialogOutcome:
        return End(value=result)

    def load_values(self, frame: StackFrame) -> FrameValues:
        return self.values_model.model_validate(frame.values)

    def store_values(self, frame: StackFrame, values: FrameValues) -> None:
        frame.values = values.model_dump(mode="json")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
