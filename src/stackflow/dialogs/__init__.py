"""Resumable dialog stack: flows, prompts and the engine that drives them."""

from .base import Dialog, FrameValues
from .context import Services, StepContext, TurnContext
from .engine import DialogEngine
from .outcomes import BeginChild, Completed, Continue, End, Failed, Suspended, Wait
from .prompts import ChoicePrompt, ConfirmPrompt, PromptOptions, TextPrompt
from .registry import FlowRegistry
from .results import NO_RESULT, BoolResult, ChoiceResult, NoResult, StepResult, TextResult, TokenResult
from .state import DialogStack, StackFrame
from .waterfall import Step, WaterfallFlow

__all__ = [
    "NO_RESULT",
    "BeginChild",
    "BoolResult",
    "ChoicePrompt",
    "ChoiceResult",
    "Completed",
    "ConfirmPrompt",
    "Continue",
    "Dialog",
    "DialogEngine",
    "DialogStack",
    "End",
    "Failed",
    "FlowRegistry",
    "FrameValues",
    "NoResult",
    "PromptOptions",
    "Services",
    "StackFrame",
    "Step",
    "StepContext",
    "StepResult",
    "Suspended",
    "TextPrompt",
    "TextResult",
    "TokenResult",
    "TurnContext",
    "Wait",
    "WaterfallFlow",
]
