from __future__ import annotations

import asyncio
from datetime import timedelta

import httpx
import pytest

from stackflow.app import SIGNED_OUT_TEXT, WELCOME_TEXT, ConversationLocks, StackflowApp
from stackflow.dialogs import WaterfallFlow
from stackflow.errors import StepExecutionError
from stackflow.events import AuthCallback, MembersAdded, TextMessage, TimeoutEvent
from stackflow.flows import COMMAND_PROMPT
from stackflow.hookspecs import hookimpl

TOKEN = "secret-token-123"


async def _say(app: StackflowApp, text: str, now, conversation_id: str = "c1"):
    return await app.process_inbound({"conversation_id": conversation_id, "text": text}, now=now)


async def _signed_in(app: StackflowApp, now):
    await _say(app, "hello", now)
    return await app.process_inbound(AuthCallback(conversation_id="c1", token=TOKEN), now=now)


@pytest.mark.asyncio
async def test_first_message_asks_for_sign_in(stack_app, now) -> None:
    result = await _say(stack_app, "hello", now)

    assert result.status == "suspended"
    assert result.depth == 2
    [card] = result.outbounds
    assert card.kind == "signin"
    assert card.text == "Please Sign In"


@pytest.mark.asyncio
async def test_sign_in_then_decline_token_view(stack_app, store, now) -> None:
    signed_in = await _signed_in(stack_app, now)
    assert signed_in.texts == ["You are now logged in.", "Would you like to view your token?"]
    assert signed_in.depth == 2

    result = await _say(stack_app, "no", now)

    assert result.texts == ["Thank you."]
    assert result.status == "completed"
    assert result.depth == 0
    assert store.raw("c1") is None


@pytest.mark.asyncio
async def test_view_token_then_run_recent(stack_app, store, graph, now) -> None:
    await _signed_in(stack_app, now)

    shown = await _say(stack_app, "yes", now)
    assert shown.texts == ["Thank you.", f"Here is your token {TOKEN}", COMMAND_PROMPT]
    assert shown.depth == 2

    result = await _say(stack_app, "recent", now)

    assert result.texts == ["Got it.", "Here are your recent messages:\n- Bob: Quarterly numbers"]
    assert result.status == "completed"
    assert store.load("c1").is_empty
    assert graph.requests[0].headers["Authorization"] == f"Bearer {TOKEN}"


@pytest.mark.asyncio
async def test_failing_command_still_completes(stack_app, store, graph, now) -> None:
    graph.responses[("GET", "/v1.0/me/mailFolders/inbox/messages")] = httpx.Response(
        503, json={"error": {"message": "service unavailable"}}
    )
    await _signed_in(stack_app, now)
    await _say(stack_app, "yes", now)

    result = await _say(stack_app, "recent", now)

    assert result.status == "completed"
    assert result.texts[0] == "Got it."
    assert result.texts[1].startswith("Sorry, I couldn't list your recent mail")
    assert store.load("c1").is_empty


@pytest.mark.asyncio
async def test_non_json_graph_reply_still_completes(stack_app, store, graph, now) -> None:
    graph.responses[("GET", "/v1.0/me/mailFolders/inbox/messages")] = httpx.Response(200, text="<html>")
    await _signed_in(stack_app, now)
    await _say(stack_app, "yes", now)

    result = await _say(stack_app, "recent", now)

    assert result.status == "completed"
    assert result.texts[0] == "Got it."
    assert result.texts[1].startswith("Sorry, I couldn't list your recent mail")
    assert store.raw("c1") is None


@pytest.mark.asyncio
async def test_unknown_command_echoes_token(stack_app, graph, now) -> None:
    await _signed_in(stack_app, now)
    await _say(stack_app, "yes", now)

    result = await _say(stack_app, "what is this", now)

    assert result.texts == ["Got it.", f"Your token is: {TOKEN}"]
    assert graph.requests == []


@pytest.mark.asyncio
async def test_token_never_reaches_persisted_state(stack_app, store, now) -> None:
    await _signed_in(stack_app, now)
    assert TOKEN not in (store.raw("c1") or "")

    await _say(stack_app, "yes", now)
    raw = store.raw("c1") or ""

    assert raw
    assert TOKEN not in raw


@pytest.mark.asyncio
async def test_auth_callback_on_fresh_conversation_signs_in(stack_app, now) -> None:
    result = await stack_app.process_inbound(AuthCallback(conversation_id="c1", token=TOKEN), now=now)

    assert result.texts == ["You are now logged in.", "Would you like to view your token?"]
    assert result.depth == 2


@pytest.mark.asyncio
async def test_declined_sign_in_reports_failure(stack_app, store, now) -> None:
    await _say(stack_app, "hello", now)

    result = await stack_app.process_inbound(AuthCallback(conversation_id="c1", declined=True), now=now)

    assert result.texts == ["Login was not successful please try again."]
    assert result.status == "completed"
    assert store.load("c1").is_empty


@pytest.mark.asyncio
async def test_logout_signs_out_and_resets(stack_app, store, now) -> None:
    await _signed_in(stack_app, now)

    result = await _say(stack_app, " Logout ", now)

    assert result.texts == [SIGNED_OUT_TEXT]
    assert result.status == "reset"
    assert store.load("c1").is_empty
    again = await _say(stack_app, "hello", now)
    assert [message.kind for message in again.outbounds] == ["signin"]


@pytest.mark.asyncio
async def test_members_added_gets_welcome(stack_app, now) -> None:
    result = await stack_app.process_inbound(MembersAdded(conversation_id="c1", members=["ada"]), now=now)

    assert result.texts == [WELCOME_TEXT]
    assert result.status == "welcome"
    assert result.depth == 0


@pytest.mark.asyncio
async def test_conversations_do_not_share_stacks(stack_app, now) -> None:
    await _signed_in(stack_app, now)

    other = await _say(stack_app, "no", now, conversation_id="c2")

    assert [message.kind for message in other.outbounds] == ["signin"]
    assert stack_app.state_store.load("c1").top.flow == "confirm_prompt"
    assert stack_app.state_store.load("c2").top.flow == "oauth_prompt"


@pytest.mark.asyncio
async def test_concurrent_events_of_one_conversation_are_serialized(stack_app, now) -> None:
    first, second = await asyncio.gather(_say(stack_app, "hello", now), _say(stack_app, "hello again", now))

    assert first.depth == second.depth == 2
    assert stack_app.state_store.load("c1").depth == 2
    assert len(stack_app.conversation_locks) == 0


@pytest.mark.asyncio
async def test_locks_are_released_after_turns(stack_app, now) -> None:
    for conversation_id in ("c1", "c2", "c3"):
        await _say(stack_app, "hello", now, conversation_id=conversation_id)

    assert len(stack_app.conversation_locks) == 0


@pytest.mark.asyncio
async def test_lock_outlives_first_turn_while_another_waits() -> None:
    locks = ConversationLocks()
    entered = asyncio.Event()
    release = asyncio.Event()

    async def first() -> None:
        async with locks.hold("c1"):
            entered.set()
            await release.wait()

    async def second() -> None:
        async with locks.hold("c1"):
            pass

    holder = asyncio.create_task(first())
    await entered.wait()
    waiter = asyncio.create_task(second())
    await asyncio.sleep(0)
    assert len(locks) == 1

    release.set()
    await asyncio.gather(holder, waiter)

    assert len(locks) == 0


@pytest.mark.asyncio
async def test_sweep_closes_expired_sign_in(stack_app, store, now) -> None:
    await _say(stack_app, "hello", now)

    assert await stack_app.sweep_expired(now=now + timedelta(seconds=10)) == []
    results = await stack_app.sweep_expired(now=now + timedelta(seconds=301))

    [result] = results
    assert result.texts == ["Login was not successful please try again."]
    assert store.load("c1").is_empty


@pytest.mark.asyncio
async def test_timeout_event_before_deadline_is_ignored(stack_app, now) -> None:
    await _say(stack_app, "hello", now)

    result = await stack_app.process_inbound(TimeoutEvent(conversation_id="c1"), now=now + timedelta(seconds=10))

    assert result.status == "ignored"
    assert result.outbounds == []
    assert stack_app.state_store.load("c1").depth == 2


@pytest.mark.asyncio
async def test_late_reply_after_deadline_closes_sign_in(stack_app, now) -> None:
    await _say(stack_app, "hello", now)

    result = await _say(stack_app, "hello?", now + timedelta(minutes=6))

    assert result.texts == ["Login was not successful please try again."]
    assert result.status == "completed"


class FlakyPlugin:
    name = "flaky"

    def __init__(self) -> None:
        self.broken = True
        self.errors: list[tuple[str, Exception]] = []

    @hookimpl
    def register_flows(self, registry, settings) -> None:
        async def greet(step):
            step.send("before")
            if self.broken:
                raise RuntimeError("backend down")
            step.send("after")
            return step.next()

        async def done(step):
            return step.end()

        registry.add(WaterfallFlow("flaky", [greet, done]))

    @hookimpl
    def on_error(self, stage, error, event) -> None:
        self.errors.append((stage, error))


@pytest.mark.asyncio
async def test_failed_turn_keeps_state_and_can_be_replayed(settings, provider, store, graph, now) -> None:
    flaky = FlakyPlugin()
    app = StackflowApp(
        settings,
        plugins=[flaky],
        token_provider=provider,
        state_store=store,
        graph_client=graph.client,
        root_flow="flaky",
    )
    event = TextMessage(conversation_id="c1", text="hi")

    with pytest.raises(StepExecutionError):
        await app.process_inbound(event, now=now)

    assert store.raw("c1") is None
    assert [stage for stage, _ in flaky.errors] == ["turn"]

    flaky.broken = False
    result = await app.process_inbound(event, now=now)

    assert result.texts == ["before", "after"]
    assert result.status == "completed"
    assert store.raw("c1") is None
