"""Tagged outcomes returned by steps and dialogs, and the turn-level result of the engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from stackflow.dialogs.results import NO_RESULT, StepResult

if TYPE_CHECKING:
    from stackflow.dialogs.state import DialogStack
    from stackflow.errors import StepExecutionError


@dataclass(frozen=True)
class Continue:
    """The step is done; run the following step on the same turn with ``value`` as its result."""

    value: StepResult = NO_RESULT


@dataclass(frozen=True)
class BeginChild:
    """Push a child flow; its end value is handed to the following step."""

    flow: str
    options: Any = None


@dataclass(frozen=True)
class End:
    """Pop the current frame, handing ``value`` to the parent frame."""

    value: StepResult = NO_RESULT


@dataclass(frozen=True)
class Wait:
    """Suspend until the next inbound event.

    Returned by a dialog it keeps the frame on top. Returned by a waterfall
    step it advances the step index first, so the next event reaches the
    following step.
    """


type StepOutcome = Continue | BeginChild | End | Wait
type DialogOutcome = Wait | BeginChild | End


@dataclass(frozen=True)
class Suspended:
    stack: DialogStack


@dataclass(frozen=True)
class Completed:
    result: StepResult = NO_RESULT


@dataclass(frozen=True)
class Failed:
    error: StepExecutionError


type TurnOutcome = Suspended | Completed | Failed
