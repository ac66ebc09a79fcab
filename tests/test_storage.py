from __future__ import annotations

import json
from pathlib import Path

import pytest

from stackflow.dialogs import DialogStack, StackFrame
from stackflow.storage import FileStateStore, MemoryStateStore, load_stack


def _stack(conversation_id: str, *flows: str) -> DialogStack:
    stack = DialogStack(conversation_id=conversation_id)
    for index, flow in enumerate(flows):
        stack.push(StackFrame(flow=flow, step_index=index, values={"n": index}))
    return stack


@pytest.fixture(params=["memory", "file"])
def state_store(request, tmp_path: Path):
    if request.param == "memory":
        return MemoryStateStore()
    return FileStateStore(tmp_path)


def test_missing_conversation_loads_empty_stack(state_store) -> None:
    stack = state_store.load("nobody")

    assert stack.conversation_id == "nobody"
    assert stack.is_empty


def test_conversations_are_isolated(state_store) -> None:
    state_store.save("a", _stack("a", "main", "oauth_prompt"))
    state_store.save("b", _stack("b", "main"))

    assert [frame.flow for frame in state_store.load("a").frames] == ["main", "oauth_prompt"]
    assert [frame.flow for frame in state_store.load("b").frames] == ["main"]
    assert state_store.list_conversations() == ["a", "b"]


def test_saved_frames_round_trip(state_store) -> None:
    state_store.save("a", _stack("a", "main", "confirm"))

    top = state_store.load("a").top

    assert top.flow == "confirm"
    assert top.step_index == 1
    assert top.values == {"n": 1}


def test_saving_empty_stack_clears_record(state_store) -> None:
    state_store.save("a", _stack("a", "main"))

    state_store.save("a", DialogStack(conversation_id="a"))

    assert state_store.list_conversations() == []
    assert state_store.load("a").is_empty


def test_clear_is_idempotent(state_store) -> None:
    state_store.save("a", _stack("a", "main"))

    state_store.clear("a")
    state_store.clear("a")

    assert state_store.load("a").is_empty


def test_record_of_another_conversation_is_not_resumed(tmp_path: Path) -> None:
    store = FileStateStore(tmp_path)
    (store.root / "a.json").write_text(_stack("b", "main").model_dump_json(), encoding="utf-8")

    assert store.load("a").is_empty


def test_file_store_escapes_conversation_ids(tmp_path: Path) -> None:
    store = FileStateStore(tmp_path)

    store.save("team/a b", _stack("team/a b", "main"))

    assert [path.name for path in store.root.iterdir()] == ["team%2Fa%20b.json"]
    assert store.list_conversations() == ["team/a b"]
    assert store.load("team/a b").depth == 1


def test_file_store_leaves_no_temp_files(tmp_path: Path) -> None:
    store = FileStateStore(tmp_path)

    for depth in range(1, 4):
        store.save("a", _stack("a", *["main"] * depth))

    assert sorted(path.name for path in store.root.iterdir()) == ["a.json"]
    assert store.read_raw("a")["conversation_id"] == "a"


def test_corrupt_file_starts_over(tmp_path: Path) -> None:
    store = FileStateStore(tmp_path)
    (store.root / "a.json").write_text("{not json", encoding="utf-8")

    assert store.load("a").is_empty


def test_temp_files_are_not_listed(tmp_path: Path) -> None:
    store = FileStateStore(tmp_path)
    (store.root / ".tmp-abc.json").write_text("{}", encoding="utf-8")

    assert store.list_conversations() == []


def test_memory_store_keeps_serialized_snapshot() -> None:
    store = MemoryStateStore()
    stack = _stack("a", "main")

    store.save("a", stack)
    stack.top.step_index = 5

    assert store.load("a").top.step_index == 0
    assert '"flow":"main"' in (store.raw("a") or "")


def _token_bearing_record(conversation_id: str) -> str:
    frame = {"flow": "main", "step_index": 1, "values": {"token": "secret", "connection_name": "graph"}}
    return json.dumps({"conversation_id": conversation_id, "frames": [frame], "updated_at": None})


def test_file_record_holding_a_token_starts_over(tmp_path: Path) -> None:
    store = FileStateStore(tmp_path)
    (store.root / "a.json").write_text(_token_bearing_record("a"), encoding="utf-8")

    assert store.load("a").is_empty


def test_load_stack_discards_token_bearing_record() -> None:
    stack = load_stack("a", _token_bearing_record("a"))

    assert stack.conversation_id == "a"
    assert stack.is_empty
