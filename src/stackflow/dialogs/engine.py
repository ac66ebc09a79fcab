"""Dialog engine: the interpreter loop that advances a conversation's dialog stack by one turn."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from stackflow.dialogs.outcomes import (
    BeginChild,
    Completed,
    DialogOutcome,
    End,
    Failed,
    Suspended,
    TurnOutcome,
    Wait,
)
from stackflow.dialogs.registry import FlowRegistry
from stackflow.dialogs.state import DialogStack, StackFrame
from stackflow.errors import StepExecutionError, UnknownFlowError

if TYPE_CHECKING:
    from stackflow.dialogs.base import Dialog
    from stackflow.dialogs.context import TurnContext


class DialogEngine:
    """Advance a dialog stack by one inbound event.

    The engine never mutates the stack it is given. It works on a copy and
    returns the new stack inside ``Suspended``; on ``Failed`` the caller still
    holds the untouched pre-turn stack and may replay the same event.
    """

    def __init__(self, registry: FlowRegistry, root_flow: str, *, max_depth: int = 16) -> None:
        self.registry = registry
        self.root_flow = root_flow
        self.max_depth = max_depth

    async def advance(self, stack: DialogStack, turn: TurnContext) -> TurnOutcome:
        working = stack.model_copy(deep=True)
        try:
            return await self._drive(working, turn)
        except StepExecutionError as exc:
            logger.warning("turn.step_failed flow={} step={} error={}", exc.flow, exc.step, exc)
            return Failed(error=exc)

    async def _drive(self, stack: DialogStack, turn: TurnContext) -> TurnOutcome:
        if stack.is_empty:
            outcome = await self._push(stack, turn, self.root_flow, None)
        else:
            frame = stack.top
            dialog = self._dialog(frame.flow)
            outcome = await self._call(frame.flow, dialog.on_event(turn, frame, turn.event))

        while True:
            match outcome:
                case Wait():
                    stack.updated_at = turn.now
                    return Suspended(stack=stack)
                case BeginChild(flow=flow, options=options):
                    outcome = await self._push(stack, turn, flow, options)
                case End(value=value):
                    popped = stack.pop()
                    logger.debug("dialog.pop flow={} depth={} result={}", popped.flow, stack.depth, value.kind)
                    if stack.is_empty:
                        return Completed(result=value)
                    parent = stack.top
                    dialog = self._dialog(parent.flow)
                    outcome = await self._call(parent.flow, dialog.resume(turn, parent, value))
                case _:
                    raise StepExecutionError(f"unsupported dialog outcome {outcome!r}")

    async def _push(self, stack: DialogStack, turn: TurnContext, flow: str, options: Any) -> DialogOutcome:
        if stack.depth >= self.max_depth:
            raise StepExecutionError(f"dialog stack exceeded {self.max_depth} frames", flow=flow)
        dialog = self._dialog(flow)
        frame = stack.push(StackFrame(flow=flow))
        logger.debug("dialog.push flow={} depth={}", flow, stack.depth)
        return await self._call(flow, dialog.begin(turn, frame, options))

    def _dialog(self, flow: str) -> Dialog:
        try:
            return self.registry.get(flow)
        except UnknownFlowError as exc:
            raise StepExecutionError(str(exc), flow=flow) from exc

    @staticmethod
    async def _call(flow: str, pending: Any) -> DialogOutcome:
        try:
            return await pending
        except StepExecutionError:
            raise
        except Exception as exc:
            raise StepExecutionError(f"flow {flow} failed: {exc!s}", flow=flow) from exc
