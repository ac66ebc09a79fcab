"""Registry of flows addressable by name."""

from __future__ import annotations

from collections.abc import Iterator

from stackflow.dialogs.base import Dialog
from stackflow.errors import DuplicateFlowError, UnknownFlowError


class FlowRegistry:
    """Flows registered once at startup; frames refer to them by name."""

    def __init__(self) -> None:
        self._flows: dict[str, Dialog] = {}

    def add(self, dialog: Dialog) -> Dialog:
        if dialog.name in self._flows:
            raise DuplicateFlowError(f"flow {dialog.name!r} is already registered")
        self._flows[dialog.name] = dialog
        return dialog

    def get(self, name: str) -> Dialog:
        try:
            return self._flows[name]
        except KeyError:
            raise UnknownFlowError(f"flow {name!r} is not registered") from None

    def names(self) -> list[str]:
        return sorted(self._flows)

    def __contains__(self, name: object) -> bool:
        return name in self._flows

    def __iter__(self) -> Iterator[Dialog]:
        return iter(self._flows.values())

    def __len__(self) -> int:
        return len(self._flows)
