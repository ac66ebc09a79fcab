"""Per-conversation dialog stack persistence."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

from loguru import logger
from pydantic import ValidationError

from stackflow.dialogs.state import DialogStack
from stackflow.errors import StackflowError

STATE_FILE_SUFFIX = ".json"


class StateStore(Protocol):
    """Keyed storage of one dialog stack per conversation."""

    def load(self, conversation_id: str) -> DialogStack: ...

    def save(self, conversation_id: str, stack: DialogStack) -> None: ...

    def clear(self, conversation_id: str) -> None: ...

    def list_conversations(self) -> list[str]: ...


def dump_stack(stack: DialogStack) -> str:
    return stack.model_dump_json()


def load_stack(conversation_id: str, raw: str | bytes) -> DialogStack:
    try:
        stack = DialogStack.model_validate_json(raw)
    except (ValidationError, ValueError, StackflowError):
        # A corrupt or token-bearing record cannot be resumed; start over.
        logger.opt(exception=True).warning("state.corrupt conversation={}", conversation_id)
        return DialogStack(conversation_id=conversation_id)
    if stack.conversation_id != conversation_id:
        logger.warning("state.conversation_mismatch stored={}", stack.conversation_id)
        return DialogStack(conversation_id=conversation_id)
    return stack


def _stamped(conversation_id: str, stack: DialogStack) -> DialogStack:
    return stack.model_copy(update={"conversation_id": conversation_id, "updated_at": datetime.now(UTC)})


class MemoryStateStore:
    """Stores serialized snapshots, so every load rebuilds the stack from its persisted form."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}
        self._lock = threading.Lock()

    def load(self, conversation_id: str) -> DialogStack:
        with self._lock:
            raw = self._records.get(conversation_id)
        if raw is None:
            return DialogStack(conversation_id=conversation_id)
        return load_stack(conversation_id, raw)

    def save(self, conversation_id: str, stack: DialogStack) -> None:
        if stack.is_empty:
            self.clear(conversation_id)
            return
        raw = dump_stack(_stamped(conversation_id, stack))
        with self._lock:
            self._records[conversation_id] = raw

    def clear(self, conversation_id: str) -> None:
        with self._lock:
            self._records.pop(conversation_id, None)

    def list_conversations(self) -> list[str]:
        with self._lock:
            return sorted(self._records)

    def raw(self, conversation_id: str) -> str | None:
        """Persisted JSON of one conversation, for inspection."""

        with self._lock:
            return self._records.get(conversation_id)


class FileStateStore:
    """One JSON document per conversation, replaced atomically on save."""

    def __init__(self, home: Path) -> None:
        self.root = (home / "state").resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def load(self, conversation_id: str) -> DialogStack:
        path = self._path(conversation_id)
        if not path.exists():
            return DialogStack(conversation_id=conversation_id)
        return load_stack(conversation_id, path.read_text(encoding="utf-8"))

    def save(self, conversation_id: str, stack: DialogStack) -> None:
        if stack.is_empty:
            self.clear(conversation_id)
            return
        path = self._path(conversation_id)
        payload = dump_stack(_stamped(conversation_id, stack))
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=STATE_FILE_SUFFIX)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

    def clear(self, conversation_id: str) -> None:
        with self._lock:
            self._path(conversation_id).unlink(missing_ok=True)

    def list_conversations(self) -> list[str]:
        names: list[str] = []
        for path in self.root.glob(f"*{STATE_FILE_SUFFIX}"):
            if path.name.startswith(".tmp-"):
                continue
            names.append(unquote(path.name.removesuffix(STATE_FILE_SUFFIX)))
        return sorted(names)

    def read_raw(self, conversation_id: str) -> dict[str, object] | None:
        path = self._path(conversation_id)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def _path(self, conversation_id: str) -> Path:
        return self.root / f"{quote(conversation_id, safe='')}{STATE_FILE_SUFFIX}"
