"""Pluggy hook namespace and application hook specifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from stackflow.auth.provider import TokenProvider
    from stackflow.config import Settings
    from stackflow.dialogs.registry import FlowRegistry
    from stackflow.events import InboundEvent, OutboundMessage
    from stackflow.storage import StateStore

STACKFLOW_HOOK_NAMESPACE = "stackflow"
hookspec = pluggy.HookspecMarker(STACKFLOW_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(STACKFLOW_HOOK_NAMESPACE)


class StackflowHookSpecs:
    """Hook contract for stackflow extensions."""

    @hookspec
    def register_flows(self, registry: FlowRegistry, settings: Settings) -> None:
        """Add flows and prompts to the registry."""

    @hookspec(firstresult=True)
    def provide_token_provider(self, settings: Settings) -> TokenProvider | None:
        """Provide the token acquisition capability."""

    @hookspec(firstresult=True)
    def provide_state_store(self, settings: Settings) -> StateStore | None:
        """Provide the dialog state store."""

    @hookspec
    def dispatch_outbound(self, message: OutboundMessage) -> bool | None:
        """Deliver one outbound message to an external channel."""

    @hookspec
    def on_error(self, stage: str, error: Exception, event: InboundEvent | None) -> None:
        """Observe failures from any stage."""
