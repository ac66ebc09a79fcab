"""Flows shipped with stackflow."""

from .main import (
    CHOICE_PROMPT,
    COMMAND_PROMPT,
    CONFIRM_PROMPT,
    MAIN_FLOW,
    OAUTH_PROMPT,
    TEXT_PROMPT,
    MainFlowValues,
    build_main_flow,
)

__all__ = [
    "CHOICE_PROMPT",
    "COMMAND_PROMPT",
    "CONFIRM_PROMPT",
    "MAIN_FLOW",
    "OAUTH_PROMPT",
    "TEXT_PROMPT",
    "MainFlowValues",
    "build_main_flow",
]
