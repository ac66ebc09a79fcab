"""Token acquisition capability."""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol
from urllib.parse import urlencode

from loguru import logger

from stackflow.auth.models import Declined, SignInRequired, TokenOutcome, TokenResponse
from stackflow.events import AuthCallback, InboundEvent, TextMessage

DEFAULT_SIGN_IN_URL = "https://login.stackflow.invalid/signin"


class TokenProvider(Protocol):
    """Contract of the external identity capability.

    ``request_token`` returns a cached or silently refreshed token when it can,
    otherwise asks for an interactive sign-in. ``event`` is the inbound event
    that reached the sign-in prompt (None when the prompt starts).
    """

    async def request_token(
        self,
        conversation_id: str,
        connection_name: str,
        event: InboundEvent | None = None,
    ) -> TokenOutcome: ...

    async def sign_out(self, conversation_id: str, connection_name: str) -> None: ...


class MemoryTokenProvider:
    """In-process token capability for local runs and tests.

    A user signs in through an ``AuthCallback`` carrying a token, or by typing
    the magic code shown with the sign-in link. Issued tokens are cached per
    conversation and connection until they expire.
    """

    def __init__(
        self,
        *,
        token_lifetime_seconds: int = 3600,
        sign_in_url: str = DEFAULT_SIGN_IN_URL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._lifetime = timedelta(seconds=token_lifetime_seconds)
        self._sign_in_url = sign_in_url
        self._clock = clock or (lambda: datetime.now(UTC))
        self._tokens: dict[tuple[str, str], TokenResponse] = {}
        self._codes: dict[tuple[str, str], str] = {}

    async def request_token(
        self,
        conversation_id: str,
        connection_name: str,
        event: InboundEvent | None = None,
    ) -> TokenOutcome:
        key = (conversation_id, connection_name)
        cached = self._tokens.get(key)
        if cached is not None:
            if not cached.is_expired(self._clock()):
                return cached
            logger.info("token.expired connection={}", connection_name)
            del self._tokens[key]

        if isinstance(event, AuthCallback):
            if event.declined:
                self._codes.pop(key, None)
                return Declined("user cancelled sign-in")
            if event.token:
                return self.issue(conversation_id, connection_name, event.token)
            if event.code and event.code == self._codes.get(key):
                return self.issue(conversation_id, connection_name, secrets.token_urlsafe(24))
        elif isinstance(event, TextMessage) and event.text.strip() and event.text.strip() == self._codes.get(key):
            return self.issue(conversation_id, connection_name, secrets.token_urlsafe(24))

        code = self._codes.setdefault(key, f"{secrets.randbelow(1_000_000):06d}")
        query = urlencode({"conversation": conversation_id, "connection": connection_name, "code": code})
        return SignInRequired(sign_in_link=f"{self._sign_in_url}?{query}")

    async def sign_out(self, conversation_id: str, connection_name: str) -> None:
        key = (conversation_id, connection_name)
        self._tokens.pop(key, None)
        self._codes.pop(key, None)

    def issue(self, conversation_id: str, connection_name: str, token: str) -> TokenResponse:
        """Record a completed sign-in and return the issued token."""

        key = (conversation_id, connection_name)
        response = TokenResponse(
            token=token,
            expiration=self._clock() + self._lifetime,
            connection_name=connection_name,
        )
        self._tokens[key] = response
        self._codes.pop(key, None)
        logger.info("token.issued connection={}", connection_name)
        return response

    def pending_code(self, conversation_id: str, connection_name: str) -> str | None:
        return self._codes.get((conversation_id, connection_name))
