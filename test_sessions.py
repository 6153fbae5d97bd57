"""Tests for session persistence."""

from api_client import Message, ToolCallRequest, ToolResult
from sessions import SessionStore


def test_save_and_reload(tmp_path):
    store = SessionStore(str(tmp_path / "sessions"))
    session = store.open(str(tmp_path), "model-x", "Refactor")
    session.set_messages([
        Message.system("sys"),
        Message.user("task"),
        Message.assistant("", [ToolCallRequest("Read", {"file_path": "a"}, "t1")]),
        Message.tool(ToolResult("t1", "A")),
        Message.assistant("done"),
    ])
    path = store.save(session)
    assert path.endswith(".json")

    again = store.find_by_name(str(tmp_path), "refactor")
    assert again is not None
    assert again.messages() == session.messages()
    assert again.task_count == 1
    assert store.open(str(tmp_path), "model-x", "Refactor").session_id == session.session_id


def test_list_is_newest_first(tmp_path):
    store = SessionStore(str(tmp_path / "sessions"))
    first = store.create_session(str(tmp_path), "m", "first")
    store.save(first)
    second = store.create_session(str(tmp_path), "m", "second")
    store.save(second)
    assert [s.name for s in store.list_sessions(str(tmp_path))] == ["second", "first"]
    assert store.get_latest(str(tmp_path)).name == "second"
    assert store.delete(first.session_id)
    assert store.load(first.session_id) is None


def test_corrupt_file_is_skipped(tmp_path):
    store = SessionStore(str(tmp_path / "sessions"))
    session = store.create_session(str(tmp_path), "m", "ok")
    store.save(session)
    (tmp_path / "sessions" / f"{session.session_id[:12]}_broken.json").write_text("{not json")
    assert [s.name for s in store.list_sessions(str(tmp_path))] == ["ok"]
