"""Persisted dialog stack and frames."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stackflow.auth.models import TokenResponse
from stackflow.errors import StackUnderflowError, TokenLeakError

_TOKEN_RESPONSE_KEYS = frozenset({"token", "connection_name"})


def find_token(value: Any, path: str = "values") -> str | None:
    """Return the path of the first token found in ``value``, if any."""

    if isinstance(value, TokenResponse):
        return path
    if isinstance(value, BaseModel):
        return find_token(value.model_dump(), path)
    if isinstance(value, Mapping):
        if value.get("kind") == "token" or _TOKEN_RESPONSE_KEYS.issubset(value.keys()):
            return path
        for key, item in value.items():
            found = find_token(item, f"{path}.{key}")
            if found is not None:
                return found
        return None
    if isinstance(value, (list, tuple, set)):
        for index, item in enumerate(value):
            found = find_token(item, f"{path}[{index}]")
            if found is not None:
                return found
    return None


class StackFrame(BaseModel):
    """Execution position of one active flow instance."""

    model_config = ConfigDict(validate_assignment=True)

    flow: str = Field(min_length=1)
    step_index: int = Field(default=0, ge=0)
    values: dict[str, Any] = Field(default_factory=dict)

    @field_validator("values")
    @classmethod
    def _reject_tokens(cls, values: dict[str, Any]) -> dict[str, Any]:
        # Frame values are persisted; tokens never are.
        leaked = find_token(values)
        if leaked is not None:
            raise TokenLeakError(f"token found in frame {leaked}")
        return values


class DialogStack(BaseModel):
    """Ordered frames of one conversation; the last frame is the active one."""

    conversation_id: str
    frames: list[StackFrame] = Field(default_factory=list)
    updated_at: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return not self.frames

    @property
    def depth(self) -> int:
        return len(self.frames)

    @property
    def top(self) -> StackFrame:
        if not self.frames:
            raise StackUnderflowError(f"dialog stack of {self.conversation_id} is empty")
        return self.frames[-1]

    def push(self, frame: StackFrame) -> StackFrame:
        self.frames.append(frame)
        return frame

    def pop(self) -> StackFrame:
        if not self.frames:
            raise StackUnderflowError(f"dialog stack of {self.conversation_id} is empty")
        return self.frames.pop()
