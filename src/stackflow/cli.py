"""stackflow command line: a local chat channel plus state inspection commands."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from stackflow.app import StackflowApp
from stackflow.bus import ConversationBus
from stackflow.config import Settings, get_settings
from stackflow.events import AuthCallback, InboundEvent, MembersAdded, OutboundMessage, TextMessage
from stackflow.logging_utils import configure_logging
from stackflow.sweeper import SignInSweeper

app = typer.Typer(name="stackflow", help="Resumable sign-in dialogs for chat bots.", add_completion=False)
console = Console()

HomeOption = typer.Option(None, "--home", help="Directory holding persisted dialog state.")
QUIT_COMMANDS = frozenset({"/quit", "/exit"})


def load_settings(home: Path | None) -> Settings:
    if home is None:
        return get_settings()
    return get_settings(home=home)


def build_app(settings: Settings) -> StackflowApp:
    return StackflowApp(settings)


@app.command()
def chat(
    conversation: str = typer.Option("local", "--conversation", "-c", help="Conversation id to resume."),
    home: Optional[Path] = HomeOption,
) -> None:
    """Talk to the bot. '/signin <token>', '/code <code>' and '/decline' simulate the sign-in redirect."""

    settings = load_settings(home)
    configure_logging(profile=settings.log_profile, level=settings.log_level)
    asyncio.run(_chat_loop(build_app(settings), conversation))


@app.command()
def state(conversation: str, home: Optional[Path] = HomeOption) -> None:
    """Print the persisted dialog stack of a conversation."""

    stack = build_app(load_settings(home)).state_store.load(conversation)
    if stack.is_empty:
        console.print(f"no active dialog for {conversation}")
        return
    console.print_json(stack.model_dump_json())


@app.command()
def reset(conversation: str, home: Optional[Path] = HomeOption) -> None:
    """Drop the persisted dialog stack of a conversation."""

    build_app(load_settings(home)).state_store.clear(conversation)
    console.print(f"cleared {conversation}")


@app.command()
def sweep(home: Optional[Path] = HomeOption) -> None:
    """Close sign-in prompts whose window has elapsed."""

    results = asyncio.run(build_app(load_settings(home)).sweep_expired())
    console.print(f"closed {len(results)} expired sign-in(s)")


def parse_line(conversation: str, line: str) -> InboundEvent | None:
    """Turn one typed line into an inbound event; None means quit."""

    stripped = line.strip()
    if stripped in QUIT_COMMANDS:
        return None
    if stripped.startswith("/signin"):
        token = stripped.removeprefix("/signin").strip() or "local-token"
        return AuthCallback(conversation_id=conversation, token=token)
    if stripped.startswith("/code"):
        return AuthCallback(conversation_id=conversation, code=stripped.removeprefix("/code").strip())
    if stripped == "/decline":
        return AuthCallback(conversation_id=conversation, declined=True)
    return TextMessage(conversation_id=conversation, text=line)


def render(message: OutboundMessage) -> None:
    if message.kind == "signin":
        body = Text(message.text)
        body.append(f"\n{message.payload.get('sign_in_link', '')}", style="underline")
        console.print(Panel(body, title=str(message.payload.get("title", "Sign In"))))
        return
    line = Text("bot> ", style="cyan")
    line.append(message.text)
    choices = message.payload.get("choices")
    if choices:
        line.append(f"  ({' / '.join(choices)})", style="dim")
    console.print(line)


async def _print_outbound(bus: ConversationBus) -> None:
    while True:
        message = await bus.next_outbound()
        if message is not None:
            render(message)


async def _chat_loop(stackflow: StackflowApp, conversation: str) -> None:
    bus = ConversationBus()
    stop_event = asyncio.Event()
    stackflow.attach_bus(bus)
    server = asyncio.create_task(stackflow.serve_bus(bus, stop_event, poll_seconds=0.2))
    printer = asyncio.create_task(_print_outbound(bus))
    sweeper = SignInSweeper(stackflow, interval_seconds=stackflow.settings.sweep_interval_seconds)
    sweeper.start()
    try:
        await bus.publish_inbound(MembersAdded(conversation_id=conversation, members=["you"]))
        while True:
            line = await asyncio.to_thread(console.input, "[bold]you> [/bold]")
            event = parse_line(conversation, line)
            if event is None:
                break
            await bus.publish_inbound(event)
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        sweeper.shutdown()
        stop_event.set()
        await server
        printer.cancel()
        for message in bus.drain_outbound():
            render(message)
