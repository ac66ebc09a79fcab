"""Step results: the single value handed from one step to the next."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from stackflow.auth.models import TokenResponse
from stackflow.events import TextMessage


class _Result(BaseModel):
    model_config = ConfigDict(frozen=True)


class NoResult(_Result):
    kind: Literal["none"] = "none"


class TokenResult(_Result):
    kind: Literal["token"] = "token"
    response: TokenResponse


class BoolResult(_Result):
    kind: Literal["bool"] = "bool"
    value: bool


class TextResult(_Result):
    kind: Literal["text"] = "text"
    text: str


class ChoiceResult(_Result):
    kind: Literal["choice"] = "choice"
    value: str
    index: int


StepResult = Annotated[NoResult | TokenResult | BoolResult | TextResult | ChoiceResult, Field(discriminator="kind")]

NO_RESULT = NoResult()


def result_from_event(event: object) -> StepResult:
    """Translate an inbound event delivered to a waiting waterfall into a step result."""

    if isinstance(event, TextMessage):
        return TextResult(text=event.text)
    return NO_RESULT
