"""Minimal async Microsoft Graph client."""

from __future__ import annotations

from datetime import datetime
from types import TracebackType
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stackflow.config import DEFAULT_GRAPH_BASE_URL
from stackflow.errors import GraphApiError

# Reported for 2xx responses whose body is not what Graph documents.
INVALID_RESPONSE_STATUS = 502


class GraphUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    mail: str | None = None
    user_principal_name: str | None = Field(default=None, alias="userPrincipalName")

    @property
    def label(self) -> str:
        return self.display_name or self.mail or self.user_principal_name or "unknown user"


class MailMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subject: str | None = None
    sender_name: str | None = None
    sender_address: str | None = None
    received_at: datetime | None = Field(default=None, alias="receivedDateTime")

    @classmethod
    def from_graph(cls, payload: dict[str, Any]) -> MailMessage:
        address = (payload.get("from") or {}).get("emailAddress") or {}
        return cls(
            subject=payload.get("subject"),
            sender_name=address.get("name"),
            sender_address=address.get("address"),
            receivedDateTime=payload.get("receivedDateTime"),
        )


class GraphClient:
    """Bearer-token client for the three calls the bot makes on behalf of a user."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_GRAPH_BASE_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> GraphClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get_me(self) -> GraphUser:
        return _parse_user("/me", await self._request("GET", "/me"))

    async def get_manager(self) -> GraphUser | None:
        try:
            payload = await self._request("GET", "/me/manager")
        except GraphApiError as exc:
            if exc.status_code == 404:
                return None
            raise
        return _parse_user("/me/manager", payload)

    async def send_mail(self, recipient: str, subject: str, content: str) -> None:
        body = {
            "message": {
                "subject": subject,
                "body": {"contentType": "Text", "content": content},
                "toRecipients": [{"emailAddress": {"address": recipient}}],
            },
            "saveToSentItems": True,
        }
        await self._request("POST", "/me/sendMail", json=body)

    async def list_recent_mail(self, top: int = 5) -> list[MailMessage]:
        params = {
            "$top": str(top),
            "$select": "subject,from,receivedDateTime",
            "$orderby": "receivedDateTime desc",
        }
        path = "/me/mailFolders/inbox/messages"
        payload = await self._request("GET", path, params=params)
        items = payload.get("value") or []
        try:
            if not isinstance(items, list):
                raise TypeError(f"value is {type(items).__name__}, not a list")
            return [MailMessage.from_graph(item) for item in items]
        except (ValidationError, TypeError, AttributeError) as exc:
            raise GraphApiError(INVALID_RESPONSE_STATUS, f"unexpected payload from {path}: {exc}") from exc

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._http.request(method, f"{self.base_url}{path}", headers=self._headers, **kwargs)
        if response.status_code >= 400:
            raise GraphApiError(response.status_code, _error_message(response))
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise GraphApiError(INVALID_RESPONSE_STATUS, f"{path} did not return JSON") from exc
        return payload if isinstance(payload, dict) else {}


def _parse_user(path: str, payload: dict[str, Any]) -> GraphUser:
    try:
        return GraphUser.model_validate(payload)
    except ValidationError as exc:
        raise GraphApiError(INVALID_RESPONSE_STATUS, f"unexpected payload from {path}: {exc.error_count()} error(s)") from exc


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return response.reason_phrase
