"""Conversation-routed message bus between a channel and the application."""

from __future__ import annotations

import asyncio
from collections import deque

from loguru import logger

from stackflow.events import InboundEvent, OutboundMessage
from stackflow.hookspecs import hookimpl


class ConversationBus:
    """Queues inbound events per conversation and collects outbound messages.

    A conversation with pending events is handed to one consumer at a time:
    ``claim`` returns it, ``take`` pops its events in arrival order, and
    ``release`` gives it back. Events published while a conversation is
    claimed wait for the same consumer, so one conversation's turns never
    run out of order while other conversations proceed in parallel.

    Registered as a plugin, the bus also receives every outbound message
    through ``dispatch_outbound``, including those produced by the sign-in
    sweep.
    """

    def __init__(self) -> None:
        self._pending: dict[str, deque[InboundEvent]] = {}
        self._claimed: set[str] = set()
        self._ready: asyncio.Queue[str] = asyncio.Queue()
        self._outbound: asyncio.Queue[OutboundMessage] = asyncio.Queue()

    async def publish_inbound(self, event: InboundEvent) -> None:
        conversation_id = event.conversation_id
        queue = self._pending.setdefault(conversation_id, deque())
        queue.append(event)
        if len(queue) == 1 and conversation_id not in self._claimed:
            self._ready.put_nowait(conversation_id)

    async def claim(self, timeout_seconds: float | None = None) -> str | None:
        """Wait for a conversation with pending events and take ownership of it."""

        try:
            conversation_id = await asyncio.wait_for(self._ready.get(), timeout=timeout_seconds)
        except TimeoutError:
            return None
        self._claimed.add(conversation_id)
        return conversation_id

    def take(self, conversation_id: str) -> InboundEvent | None:
        queue = self._pending.get(conversation_id)
        if not queue:
            return None
        return queue.popleft()

    def release(self, conversation_id: str) -> None:
        self._claimed.discard(conversation_id)
        if self._pending.get(conversation_id):
            self._ready.put_nowait(conversation_id)
        else:
            self._pending.pop(conversation_id, None)

    def pending(self, conversation_id: str | None = None) -> int:
        if conversation_id is not None:
            return len(self._pending.get(conversation_id, ()))
        return sum(len(queue) for queue in self._pending.values())

    async def publish_outbound(self, message: OutboundMessage) -> None:
        await self._outbound.put(message)

    async def next_outbound(self, timeout_seconds: float | None = None) -> OutboundMessage | None:
        try:
            return await asyncio.wait_for(self._outbound.get(), timeout=timeout_seconds)
        except TimeoutError:
            return None

    def drain_outbound(self) -> list[OutboundMessage]:
        messages: list[OutboundMessage] = []
        while not self._outbound.empty():
            messages.append(self._outbound.get_nowait())
        return messages

    @hookimpl
    def dispatch_outbound(self, message: OutboundMessage) -> bool:
        self._outbound.put_nowait(message)
        logger.debug("bus.outbound conversation={} kind={}", message.conversation_id, message.kind)
        return True
