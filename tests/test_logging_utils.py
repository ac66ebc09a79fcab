from __future__ import annotations

import asyncio

import pytest

from stackflow.logging_utils import conversation_scope, current_conversation


def test_conversation_scope_binds_and_restores() -> None:
    assert current_conversation() == "-"

    with conversation_scope("c1"):
        assert current_conversation() == "c1"
        with conversation_scope("c2"):
            assert current_conversation() == "c2"
        assert current_conversation() == "c1"

    assert current_conversation() == "-"


@pytest.mark.asyncio
async def test_conversation_scope_is_task_local() -> None:
    seen: dict[str, str] = {}

    async def handle(conversation_id: str) -> None:
        with conversation_scope(conversation_id):
            await asyncio.sleep(0)
            seen[conversation_id] = current_conversation()

    await asyncio.gather(handle("a"), handle("b"))

    assert seen == {"a": "a", "b": "b"}
