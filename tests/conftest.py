from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import httpx
import pytest

from stackflow.app import StackflowApp
from stackflow.auth.provider import MemoryTokenProvider
from stackflow.config import Settings
from stackflow.dialogs import Services, TurnContext
from stackflow.events import TextMessage
from stackflow.graph.client import GraphClient
from stackflow.storage import MemoryStateStore

GRAPH_BASE_URL = "https://graph.test/v1.0"
T0 = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


class FakeGraph:
    """Records Graph requests and answers them from canned payloads."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: dict[tuple[str, str], httpx.Response] = {
            ("GET", "/v1.0/me"): httpx.Response(200, json={"displayName": "Ada Lovelace", "mail": "ada@example.com"}),
            ("GET", "/v1.0/me/manager"): httpx.Response(404, json={"error": {"message": "manager not found"}}),
            ("POST", "/v1.0/me/sendMail"): httpx.Response(202),
            ("GET", "/v1.0/me/mailFolders/inbox/messages"): httpx.Response(
                200,
                json={
                    "value": [
                        {
                            "subject": "Quarterly numbers",
                            "from": {"emailAddress": {"name": "Bob", "address": "bob@example.com"}},
                            "receivedDateTime": "2026-10-18T09:00:00Z",
                        }
                    ]
                },
            ),
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"error": {"message": "not found"}})
        return response

    def client(self, token: str) -> GraphClient:
        return GraphClient(token, base_url=GRAPH_BASE_URL, transport=httpx.MockTransport(self.handler))

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(home=tmp_path / "home", state_backend="memory", graph_base_url=GRAPH_BASE_URL, _env_file=None)


@pytest.fixture
def provider() -> MemoryTokenProvider:
    return MemoryTokenProvider(clock=lambda: T0)


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def services(settings: Settings, provider: MemoryTokenProvider, graph: FakeGraph) -> Services:
    return Services(settings=settings, token_provider=provider, graph_client=graph.client)


@pytest.fixture
def stack_app(
    settings: Settings,
    provider: MemoryTokenProvider,
    store: MemoryStateStore,
    graph: FakeGraph,
) -> StackflowApp:
    return StackflowApp(settings, token_provider=provider, state_store=store, graph_client=graph.client)


@pytest.fixture
def make_turn(services: Services):
    def _make(text: str = "", *, conversation_id: str = "c1", now: datetime = T0, **kwargs: Any) -> TurnContext:
        return TurnContext(TextMessage(conversation_id=conversation_id, text=text, **kwargs), services, now=now)

    return _make


@pytest.fixture
def now() -> datetime:
    return T0
