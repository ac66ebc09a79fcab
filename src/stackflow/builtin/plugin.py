"""Builtin hook implementations: the main flow, its prompts and default collaborators."""

from __future__ import annotations

from stackflow.auth.prompt import OAuthPrompt
from stackflow.auth.provider import MemoryTokenProvider, TokenProvider
from stackflow.config import Settings
from stackflow.dialogs import ChoicePrompt, ConfirmPrompt, FlowRegistry, TextPrompt
from stackflow.flows import CHOICE_PROMPT, CONFIRM_PROMPT, OAUTH_PROMPT, TEXT_PROMPT, build_main_flow
from stackflow.hookspecs import hookimpl
from stackflow.storage import FileStateStore, MemoryStateStore, StateStore


class BuiltinPlugin:
    @hookimpl
    def register_flows(self, registry: FlowRegistry, settings: Settings) -> None:
        registry.add(
            OAuthPrompt(
                OAUTH_PROMPT,
                connection_name=settings.connection_name,
                timeout_seconds=settings.sign_in_timeout_seconds,
            )
        )
        registry.add(ConfirmPrompt(CONFIRM_PROMPT))
        registry.add(TextPrompt(TEXT_PROMPT))
        registry.add(ChoicePrompt(CHOICE_PROMPT))
        registry.add(build_main_flow())

    @hookimpl
    def provide_token_provider(self, settings: Settings) -> TokenProvider:
        return MemoryTokenProvider(token_lifetime_seconds=settings.token_lifetime_seconds)

    @hookimpl
    def provide_state_store(self, settings: Settings) -> StateStore:
        if settings.state_backend == "memory":
            return MemoryStateStore()
        return FileStateStore(settings.resolve_home())


plugin = BuiltinPlugin()
