"""Token acquisition data types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class TokenResponse(BaseModel):
    """Bearer credential returned by the token capability. Never persisted."""

    model_config = ConfigDict(frozen=True)

    token: str
    expiration: datetime | None = None
    connection_name: str

    def is_expired(self, now: datetime) -> bool:
        return self.expiration is not None and self.expiration <= now

    def __repr__(self) -> str:
        return f"TokenResponse(connection_name={self.connection_name!r}, expiration={self.expiration!r})"


@dataclass(frozen=True)
class SignInRequired:
    """The user has to complete an interactive sign-in first."""

    sign_in_link: str


@dataclass(frozen=True)
class Declined:
    """The user declined, or the capability refused to issue a token."""

    reason: str = "declined"


type TokenOutcome = TokenResponse | SignInRequired | Declined
