"""User-facing wrappers around Graph calls. Each reports its own success or failure."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from loguru import logger

from stackflow.errors import GraphApiError

if TYPE_CHECKING:
    from stackflow.dialogs.context import TurnContext
    from stackflow.graph.client import GraphClient

MAIL_SUBJECT = "Message from a bot!"


async def list_me(turn: TurnContext, client: GraphClient) -> bool:
    try:
        me = await client.get_me()
    except (GraphApiError, httpx.HTTPError) as exc:
        return _report_failure(turn, "look up your profile", exc)

    try:
        manager = await client.get_manager()
    except (GraphApiError, httpx.HTTPError) as exc:
        # The manager is optional; personal accounts often may not read it.
        logger.info("graph.manager_unavailable error={}", exc)
        manager = None

    if manager is None:
        turn.send(f"You are {me.label}.")
    else:
        turn.send(f"You are {me.label} and you report to {manager.label}.")
    return True


async def send_mail(turn: TurnContext, client: GraphClient, recipient: str) -> bool:
    try:
        me = await client.get_me()
        await client.send_mail(
            recipient,
            MAIL_SUBJECT,
            f"Hi there! I had this message sent from a bot. - Your friend, {me.label}",
        )
    except (GraphApiError, httpx.HTTPError) as exc:
        return _report_failure(turn, f"send a message to '{recipient}'", exc)

    turn.send(f"I sent a message to '{recipient}' from your account.")
    return True


async def list_recent_mail(turn: TurnContext, client: GraphClient) -> bool:
    try:
        messages = await client.list_recent_mail()
    except (GraphApiError, httpx.HTTPError) as exc:
        return _report_failure(turn, "list your recent mail", exc)

    if not messages:
        turn.send("Unable to find any recent unread mail.")
        return True

    lines = [f"- {message.sender_name or message.sender_address or 'unknown'}: {message.subject or '(no subject)'}" for message in messages]
    turn.send("Here are your recent messages:\n" + "\n".join(lines))
    return True


def _report_failure(turn: TurnContext, action: str, exc: Exception) -> bool:
    logger.warning("graph.call_failed action={} error={}", action, exc)
    turn.send(f"Sorry, I couldn't {action}: {exc}")
    return False
