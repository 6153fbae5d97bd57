"""Tests for Read, Edit and Write against a real temporary directory."""

import pytest

from backend import LocalBackend
from errors import AmbiguousEditError, NotFoundError, ReplacementCountError, ToolIOError
from tools import EditCommand, ReadCommand, WriteCommand, ToolEngine
from tools.file_ops import edit_file, preview_edit, preview_write, read_file, write_file


@pytest.fixture
def backend(tmp_path):
    return LocalBackend(str(tmp_path))


def test_read_numbers_lines(backend, tmp_path):
    (tmp_path / "a.txt").write_text("one\ntwo\nthree\n")
    out = read_file(ReadCommand("a.txt"), backend)
    assert out.splitlines()[0] == "[3 lines total]"
    assert "     2|two" in out


def test_read_window(backend, tmp_path):
    (tmp_path / "a.txt").write_text("\n".join(f"line {i}" for i in range(1, 11)))
    out = read_file(ReadCommand("a.txt", offset=4, limit=2), backend)
    assert "(showing lines 4-5)" in out
    assert "line 4" in out and "line 5" in out
    assert "line 6" not in out


def test_read_offset_past_end(backend, tmp_path):
    (tmp_path / "a.txt").write_text("only\n")
    assert "past the end" in read_file(ReadCommand("a.txt", offset=50), backend)


def test_read_large_file_gives_overview(backend, tmp_path):
    body = ["import os"] + [f"x{i} = {i}" for i in range(600)] + ["def tail_fn():", "    pass"]
    (tmp_path / "big.py").write_text("\n".join(body))
    out = read_file(ReadCommand("big.py"), backend)
    assert "file is large" in out
    assert "import os" in out
    assert "def tail_fn" in out


def test_read_missing_file(backend):
    with pytest.raises(NotFoundError):
        read_file(ReadCommand("nope.txt"), backend)


def test_read_directory(backend, tmp_path):
    (tmp_path / "sub").mkdir()
    with pytest.raises(ToolIOError):
        read_file(ReadCommand("sub"), backend)


def test_path_outside_working_directory(backend):
    with pytest.raises(ToolIOError):
        read_file(ReadCommand("../../etc/passwd"), backend)


def test_edit_single_occurrence(backend, tmp_path):
    (tmp_path / "a.py").write_text("x = 1\ny = 2\n")
    out = edit_file(EditCommand("a.py", "y = 2", "y = 3"), backend)
    assert out.startswith("Applied edit to a.py")
    assert "+y = 3" in out
    assert (tmp_path / "a.py").read_text() == "x = 1\ny = 3\n"


def test_edit_ambiguous_leaves_file_alone(backend, tmp_path):
    (tmp_path / "a.py").write_text("foo\nfoo\n")
    with pytest.raises(AmbiguousEditError) as exc:
        edit_file(EditCommand("a.py", "foo", "bar"), backend)
    assert exc.value.count == 2
    assert (tmp_path / "a.py").read_text() == "foo\nfoo\n"


def test_edit_expected_replacements(backend, tmp_path):
    (tmp_path / "a.py").write_text("foo foo\nfoo\n")
    out = edit_file(EditCommand("a.py", "foo", "bar", expected_replacements=3), backend)
    assert "(3 replacements)" in out
    assert (tmp_path / "a.py").read_text() == "bar bar\nbar\n"


def test_edit_count_mismatch(backend, tmp_path):
    (tmp_path / "a.py").write_text("foo foo\n")
    with pytest.raises(ReplacementCountError) as exc:
        edit_file(EditCommand("a.py", "foo", "bar", expected_replacements=3), backend)
    assert (exc.value.expected, exc.value.actual) == (3, 2)
    assert (tmp_path / "a.py").read_text() == "foo foo\n"


def test_edit_not_found(backend, tmp_path):
    (tmp_path / "a.py").write_text("abc\n")
    with pytest.raises(NotFoundError):
        edit_file(EditCommand("a.py", "xyz", "q"), backend)


def test_edit_preserves_crlf(backend, tmp_path):
    (tmp_path / "w.txt").write_bytes(b"one\r\ntwo\r\n")
    edit_file(EditCommand("w.txt", "two", "2"), backend)
    assert (tmp_path / "w.txt").read_bytes() == b"one\r\n2\r\n"


def test_preview_edit_does_not_write(backend, tmp_path):
    (tmp_path / "a.py").write_text("old\n")
    diff = preview_edit(EditCommand("a.py", "old", "new"), backend)
    assert "-old" in diff and "+new" in diff
    assert (tmp_path / "a.py").read_text() == "old\n"


def test_write_creates_parents(backend, tmp_path):
    out = write_file(WriteCommand("pkg/mod.py", "a\nb\n"), backend)
    assert out.startswith("Created 2 lines to pkg/mod.py")
    assert "/dev/null" in out
    assert (tmp_path / "pkg" / "mod.py").read_text() == "a\nb\n"


def test_write_overwrites(backend, tmp_path):
    (tmp_path / "a.txt").write_text("before\n")
    out = write_file(WriteCommand("a.txt", "after\n"), backend)
    assert out.startswith("Wrote 1 lines to a.txt")
    assert backend.read_file("a.txt") == "after\n"
    assert read_file(ReadCommand("a.txt"), backend) == "[1 lines total]\n     1|after"


def test_preview_write_new_file(backend, tmp_path):
    diff = preview_write(WriteCommand("new.txt", "hello\n"), backend)
    assert "+hello" in diff
    assert not (tmp_path / "new.txt").exists()


class _Recorder:
    def __init__(self):
        self.messages = []

    def send(self, message):
        self.messages.append(message)
        return True


def test_engine_reports_progress(backend, tmp_path):
    (tmp_path / "a.txt").write_text("x\n")
    notes = _Recorder()
    engine = ToolEngine(backend, notes)
    engine.announce("Read")
    engine.execute(ReadCommand("a.txt"))
    assert notes.messages == ["⏺ [Read] Executing Read...", "[TOOL_EXECUTED]"]


def test_engine_reports_failure(backend):
    notes = _Recorder()
    engine = ToolEngine(backend, notes)
    with pytest.raises(NotFoundError):
        engine.execute(ReadCommand("missing.txt"))
    assert notes.messages[-1].startswith("[error] Read:")


def test_engine_describes_commands():
    assert ToolEngine.describe(EditCommand("a.py", "x", "y")) == "Modify file 'a.py'"
    assert ToolEngine.describe(WriteCommand("a.py", "")) == "Overwrite file 'a.py'"
    assert ToolEngine.needs_approval(EditCommand("a.py", "x", "y"))
    assert not ToolEngine.needs_approval(ReadCommand("a.py"))
