"""Waterfall flows: an immutable, ordered list of named steps keyed by an integer index."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from stackflow.dialogs.base import Dialog, FrameValues
from stackflow.dialogs.context import StepContext
from stackflow.dialogs.outcomes import BeginChild, Continue, DialogOutcome, End, StepOutcome, Wait
from stackflow.dialogs.results import NO_RESULT, StepResult, result_from_event
from stackflow.errors import FlowDefinitionError, StackflowError, StepExecutionError

if TYPE_CHECKING:
    from stackflow.dialogs.context import TurnContext
    from stackflow.dialogs.state import StackFrame
    from stackflow.events import InboundEvent

type StepFunction = Callable[[StepContext[Any]], Awaitable[StepOutcome]]


@dataclass(frozen=True)
class Step:
    name: str
    run: StepFunction


class WaterfallFlow(Dialog):
    """Runs its steps strictly in order.

    ``frame.step_index`` is the index of the step that receives the next
    result. It only moves forward after a step returned successfully, so a
    failed step is retried from the same index. ``Continue`` runs the next
    step on the same turn; ``Wait`` hands it the next inbound event instead.
    """

    def __init__(
        self,
        name: str,
        steps: Sequence[Step | StepFunction],
        *,
        values_model: type[FrameValues] = FrameValues,
    ) -> None:
        super().__init__(name)
        self.steps: tuple[Step, ...] = tuple(_as_step(step) for step in steps)
        self.values_model = values_model  # type: ignore[misc]
        if not self.steps:
            raise FlowDefinitionError(f"flow {name!r} has no steps")
        names = [step.name for step in self.steps]
        duplicates = sorted({step for step in names if names.count(step) > 1})
        if duplicates:
            raise FlowDefinitionError(f"flow {name!r} has duplicate steps: {', '.join(duplicates)}")

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]

    async def begin(self, turn: TurnContext, frame: StackFrame, options: Any = None) -> DialogOutcome:
        frame.step_index = 0
        return await self._run_step(turn, frame, NO_RESULT, options)

    async def on_event(self, turn: TurnContext, frame: StackFrame, event: InboundEvent) -> DialogOutcome:
        return await self._run_step(turn, frame, result_from_event(event))

    async def resume(self, turn: TurnContext, frame: StackFrame, result: StepResult) -> DialogOutcome:
        return await self._run_step(turn, frame, result)

    async def _run_step(
        self,
        turn: TurnContext,
        frame: StackFrame,
        result: StepResult,
        options: Any = None,
    ) -> DialogOutcome:
        while True:
            index = frame.step_index
            if index >= len(self.steps):
                return End(value=result)

            step = self.steps[index]
            context = StepContext(
                turn=turn,
                flow=self.name,
                step=step.name,
                index=index,
                result=result,
                values=self.load_values(frame),
                options=options,
            )
            logger.debug("step.run flow={} step={} index={} result={}", self.name, step.name, index, result.kind)
            try:
                outcome = await step.run(context)
            except StepExecutionError:
                raise
            except Exception as exc:
                raise StepExecutionError(
                    f"step {self.name}.{step.name} failed: {exc!s}", flow=self.name, step=step.name
                ) from exc

            match outcome:
                case Continue(value=value):
                    self._commit(frame, context, index + 1)
                    result, options = value, None
                case Wait() | BeginChild():
                    self._commit(frame, context, index + 1)
                    return outcome
                case End():
                    return outcome
                case _:
                    raise StepExecutionError(
                        f"step {self.name}.{step.name} returned {outcome!r}", flow=self.name, step=step.name
                    )

    def _commit(self, frame: StackFrame, context: StepContext[Any], next_index: int) -> None:
        try:
            self.store_values(frame, context.values)
        except StackflowError as exc:
            raise StepExecutionError(
                f"step {self.name}.{context.step} stored invalid values: {exc!s}", flow=self.name, step=context.step
            ) from exc
        frame.step_index = next_index


def _as_step(step: Step | StepFunction) -> Step:
    if isinstance(step, Step):
        return step
    return Step(name=step.__name__, run=step)
