"""Command parsing and dispatch for signed-in users."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from loguru import logger

from stackflow.graph.helpers import list_me, list_recent_mail, send_mail

if TYPE_CHECKING:
    from stackflow.auth.models import TokenResponse
    from stackflow.dialogs.context import TurnContext


class CommandVerb(StrEnum):
    SELF = "self"
    SEND = "send"
    RECENT = "recent"
    OTHER = "other"


@dataclass(frozen=True)
class Command:
    verb: CommandVerb
    argument: str | None = None


def parse_command(raw: str | None) -> Command:
    """Classify free text into a command.

    The verb is the first lower-cased word. ``send*`` takes the second word as
    recipient, ``recent*`` lists mail, ``me`` looks up the signed-in user, and
    anything else is ``other``.
    """

    text = (raw or "").strip()
    parts = text.lower().split()
    verb = parts[0] if parts else ""

    if verb.startswith("send"):
        return Command(CommandVerb.SEND, parts[1] if len(parts) > 1 else "")
    if verb.startswith("recent"):
        return Command(CommandVerb.RECENT)
    if verb == "me":
        return Command(CommandVerb.SELF)
    return Command(CommandVerb.OTHER, text)


async def dispatch_command(turn: TurnContext, command: Command, token: TokenResponse) -> None:
    """Run one command with a fresh token. Downstream failures are reported to the user, never raised."""

    logger.info("command.dispatch verb={}", command.verb)
    if command.verb is CommandVerb.OTHER:
        turn.send(f"Your token is: {token.token}")
        return

    async with turn.services.graph_client(token.token) as client:
        match command.verb:
            case CommandVerb.SELF:
                await list_me(turn, client)
            case CommandVerb.SEND:
                await send_mail(turn, client, command.argument or "")
            case CommandVerb.RECENT:
                await list_recent_mail(turn, client)
