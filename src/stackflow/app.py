"""Application runtime: one inbound event in, one persisted dialog transition out."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import pluggy
from loguru import logger

from stackflow.auth.prompt import OAuthPrompt
from stackflow.auth.provider import TokenProvider
from stackflow.bus import ConversationBus
from stackflow.builtin.plugin import plugin as builtin_plugin
from stackflow.config import Settings, get_settings
from stackflow.dialogs import Completed, DialogEngine, DialogStack, Failed, FlowRegistry, Services, Suspended, TurnContext
from stackflow.errors import ConfigurationError, UnknownFlowError
from stackflow.events import InboundEvent, MembersAdded, TextMessage, TimeoutEvent, parse_inbound
from stackflow.flows import MAIN_FLOW
from stackflow.graph.client import GraphClient
from stackflow.hook_runtime import HookRuntime
from stackflow.hookspecs import STACKFLOW_HOOK_NAMESPACE, StackflowHookSpecs
from stackflow.logging_utils import conversation_scope
from stackflow.storage import StateStore
from stackflow.types import TurnResult, TurnStatus

LOGOUT_COMMAND = "logout"
WELCOME_TEXT = "Welcome to AuthenticationBot. Type anything to get logged in. Type 'logout' to sign-out."
SIGNED_OUT_TEXT = "You have been signed out."


class ConversationLocks:
    """One asyncio lock per conversation; turns of one conversation never interleave.

    A lock lives only while a turn holds it or waits for it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[None]:
        lock, users = self._locks.get(conversation_id) or (asyncio.Lock(), 0)
        self._locks[conversation_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            _, users = self._locks[conversation_id]
            if users == 1:
                del self._locks[conversation_id]
            else:
                self._locks[conversation_id] = (lock, users - 1)


class StackflowApp:
    """Drives every conversation's dialog stack from inbound events."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        plugins: Iterable[object] = (),
        token_provider: TokenProvider | None = None,
        state_store: StateStore | None = None,
        graph_client: Callable[[str], GraphClient] | None = None,
        root_flow: str = MAIN_FLOW,
    ) -> None:
        self.settings = settings or get_settings()
        self._plugin_manager = pluggy.PluginManager(STACKFLOW_HOOK_NAMESPACE)
        self._plugin_manager.add_hookspecs(StackflowHookSpecs)
        self._plugin_manager.register(builtin_plugin, name="builtin")
        for index, extra in enumerate(plugins):
            self._plugin_manager.register(extra, name=getattr(extra, "name", None) or f"plugin-{index}")
        self._hooks = HookRuntime(self._plugin_manager)

        self.registry = FlowRegistry()
        # Registration faults are configuration errors and must not be isolated.
        self._plugin_manager.hook.register_flows(registry=self.registry, settings=self.settings)
        if root_flow not in self.registry:
            raise UnknownFlowError(f"root flow {root_flow!r} is not registered")

        self.token_provider: TokenProvider = token_provider or self._hooks.call_first(
            "provide_token_provider", settings=self.settings
        )
        self.state_store: StateStore = state_store or self._hooks.call_first("provide_state_store", settings=self.settings)
        if self.token_provider is None or self.state_store is None:
            raise ConfigurationError("no token provider or state store available")

        self.services = Services(
            settings=self.settings,
            token_provider=self.token_provider,
            graph_client=graph_client or self._default_graph_client,
        )
        self.engine = DialogEngine(self.registry, root_flow, max_depth=self.settings.max_stack_depth)
        self.conversation_locks = ConversationLocks()

    async def process_inbound(self, raw: InboundEvent | Mapping[str, Any], *, now: datetime | None = None) -> TurnResult:
        """Run one inbound event against its conversation's stack and persist the outcome."""

        event = parse_inbound(raw)
        conversation_id = event.conversation_id
        async with self.conversation_locks.hold(conversation_id):
            with conversation_scope(conversation_id):
                try:
                    return await self._process_locked(event, now)
                except Exception as exc:
                    self._hooks.notify_error(stage="turn", error=exc, event=event)
                    raise

    def attach_bus(self, bus: ConversationBus) -> None:
        """Deliver every outbound message, sweep results included, to ``bus``."""

        if not self._plugin_manager.is_registered(bus):
            self._plugin_manager.register(bus, name=f"bus-{id(bus)}")

    async def handle_bus_once(self, bus: ConversationBus, *, timeout_seconds: float | None = None) -> TurnResult | None:
        """Run the oldest pending event of one ready conversation."""

        self.attach_bus(bus)
        conversation_id = await bus.claim(timeout_seconds)
        if conversation_id is None:
            return None
        try:
            event = bus.take(conversation_id)
            return None if event is None else await self.process_inbound(event)
        finally:
            bus.release(conversation_id)

    async def serve_bus(self, bus: ConversationBus, stop_event: asyncio.Event, *, poll_seconds: float = 0.5) -> None:
        """Process bus events until stopped.

        Each claimed conversation is drained by one worker in arrival order;
        different conversations run concurrently.
        """

        self.attach_bus(bus)
        workers: set[asyncio.Task[None]] = set()
        while not stop_event.is_set():
            conversation_id = await bus.claim(poll_seconds)
            if conversation_id is None:
                continue
            worker = asyncio.create_task(self._drain_conversation(bus, conversation_id))
            workers.add(worker)
            worker.add_done_callback(workers.discard)
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)

    async def sweep_expired(self, *, now: datetime | None = None) -> list[TurnResult]:
        """Close every sign-in prompt whose window has elapsed."""

        now = now or datetime.now(UTC)
        results: list[TurnResult] = []
        for conversation_id in self.state_store.list_conversations():
            if not self._has_expired_sign_in(self.state_store.load(conversation_id), now):
                continue
            result = await self.process_inbound(TimeoutEvent(conversation_id=conversation_id), now=now)
            results.append(result)
        if results:
            logger.info("signin.sweep closed={}", len(results))
        return results

    def hook_report(self) -> dict[str, list[str]]:
        return self._hooks.hook_report()

    async def _process_locked(self, event: InboundEvent, now: datetime | None) -> TurnResult:
        conversation_id = event.conversation_id
        turn = TurnContext(event, self.services, now=now)
        logger.info("turn.start type={}", event.type)

        if isinstance(event, MembersAdded):
            turn.send(WELCOME_TEXT)
            return self._finish(turn, "welcome", self.state_store.load(conversation_id).depth)

        if isinstance(event, TextMessage) and event.text.strip().lower() == LOGOUT_COMMAND:
            await self.token_provider.sign_out(conversation_id, self.settings.connection_name)
            self.state_store.clear(conversation_id)
            turn.send(SIGNED_OUT_TEXT)
            logger.info("turn.reset")
            return self._finish(turn, "reset", 0)

        stack = self.state_store.load(conversation_id)
        if isinstance(event, TimeoutEvent) and not self._has_expired_sign_in(stack, turn.now):
            return self._finish(turn, "ignored", stack.depth)

        outcome = await self.engine.advance(stack, turn)
        match outcome:
            case Suspended(stack=advanced):
                self.state_store.save(conversation_id, advanced)
                return self._finish(turn, "suspended", advanced.depth)
            case Completed():
                self.state_store.clear(conversation_id)
                return self._finish(turn, "completed", 0)
            case Failed(error=error):
                logger.opt(exception=error).error("turn.failed flow={} step={}", error.flow, error.step)
                raise error
        raise AssertionError(f"unexpected turn outcome {outcome!r}")

    def _finish(self, turn: TurnContext, status: TurnStatus, depth: int) -> TurnResult:
        outbounds = turn.outbounds
        for message in outbounds:
            self._hooks.call_many("dispatch_outbound", message=message)
        logger.info("turn.done status={} depth={} outbound={}", status, depth, len(outbounds))
        return TurnResult(conversation_id=turn.conversation_id, status=status, depth=depth, outbounds=outbounds)

    def _has_expired_sign_in(self, stack: DialogStack, now: datetime) -> bool:
        if stack.is_empty or stack.top.flow not in self.registry:
            return False
        dialog = self.registry.get(stack.top.flow)
        return isinstance(dialog, OAuthPrompt) and dialog.is_expired(stack.top, now)

    async def _drain_conversation(self, bus: ConversationBus, conversation_id: str) -> None:
        try:
            while (event := bus.take(conversation_id)) is not None:
                try:
                    await self.process_inbound(event)
                except Exception:
                    logger.exception("bus.turn_failed conversation={}", conversation_id)
        finally:
            bus.release(conversation_id)

    def _default_graph_client(self, token: str) -> GraphClient:
        return GraphClient(
            token,
            base_url=self.settings.graph_base_url,
            timeout=self.settings.http_timeout_seconds,
        )
