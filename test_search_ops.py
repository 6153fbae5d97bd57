"""Tests for Glob, Grep, LS and ParseCode."""

import pytest

from backend import LocalBackend
from errors import NotFoundError, ToolIOError
from tools import GlobCommand, GrepCommand, ListCommand, ParseCodeCommand, invalidate_gitignore_cache
from tools.search_ops import _expand_braces, glob_files, grep, list_directory, parse_code


@pytest.fixture
def project(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text(
        "import os\n\nclass Server(Base):\n    def start(self, port):\n        pass\n\ndef main():\n    pass\n"
    )
    (tmp_path / "src" / "util.py").write_text("def helper():\n    return 1\n")
    (tmp_path / "notes.txt").write_text("Nothing here\nIMPORTANT: ship it\n")
    (tmp_path / "todo.md").write_text("important but markdown\n")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.py").write_text("def vendored():\n    pass\n")
    invalidate_gitignore_cache()
    return tmp_path


@pytest.fixture
def backend(project):
    return LocalBackend(str(project))


def test_glob_recursive(backend):
    out = glob_files(GlobCommand("**/*.py"), backend)
    assert out.startswith("Found 2 files matching pattern '**/*.py':")
    assert "src/app.py" in out and "src/util.py" in out
    assert "node_modules" not in out


def test_glob_under_path(backend):
    out = glob_files(GlobCommand("*.py", path="src"), backend)
    assert "1. src/app.py" in out


def test_glob_respects_gitignore(backend, project):
    (project / ".gitignore").write_text("util.py\n")
    invalidate_gitignore_cache()
    out = glob_files(GlobCommand("**/*.py"), backend)
    assert "util.py" not in out
    assert "Found 1 files" in out


def test_glob_missing_root(backend):
    with pytest.raises(NotFoundError):
        glob_files(GlobCommand("*.py", path="nowhere"), backend)


def test_grep_case_insensitive_with_include(backend):
    out = grep(GrepCommand("(?i)important", include="*.txt"), backend)
    assert out.startswith("Found 1 matches for pattern '(?i)important':")
    assert "notes.txt:2:IMPORTANT: ship it" in out
    assert "todo.md" not in out


def test_grep_brace_include(backend):
    out = grep(GrepCommand("(?i)important", include="*.{txt,md}"), backend)
    assert "Found 2 matches" in out


def test_grep_skips_binary(backend, project):
    (project / "blob.bin").write_bytes(b"important\x00\x01")
    out = grep(GrepCommand("important"), backend)
    assert "blob.bin" not in out


def test_grep_single_file(backend):
    out = grep(GrepCommand("def", path="src/util.py"), backend)
    assert "src/util.py:1:def helper():" in out


def test_expand_braces():
    assert _expand_braces("*.{py,toml}") == ["*.py", "*.toml"]
    assert _expand_braces("*.py") == ["*.py"]


def test_ls_tags_entries(backend):
    out = list_directory(ListCommand("."), backend)
    assert out.startswith("Directory listing for '.':")
    assert "[DIR] src" in out
    assert "[FILE] notes.txt" in out
    assert "node_modules" not in out


def test_ls_ignore_patterns(backend):
    out = list_directory(ListCommand(".", ignore=["*.md"]), backend)
    assert "todo.md" not in out
    assert "notes.txt" in out


def test_ls_on_file(backend):
    with pytest.raises(ToolIOError):
        list_directory(ListCommand("notes.txt"), backend)


def test_parse_code_outline(backend):
    out = parse_code(ParseCodeCommand("src", "server classes"), backend)
    assert out.startswith("# Code structure for 'src'")
    assert "## src/app.py" in out
    assert "class Server(Base)" in out
    assert "def start(self, port)" in out
    # util.py has no match for the query terms
    assert "## src/util.py" not in out


def test_parse_code_file_limit(backend):
    out = parse_code(ParseCodeCommand("src", "anything", max_files=1), backend)
    assert "1 of 2 source files shown" in out


def test_glob_cannot_leave_working_directory(tmp_path):
    (tmp_path / "secret.txt").write_text("s3cr3t\n")
    wd = tmp_path / "wd"
    wd.mkdir()
    (wd / "inside.txt").write_text("")
    confined = LocalBackend(str(wd))

    with pytest.raises(ToolIOError):
        glob_files(GlobCommand("../*"), confined)
    with pytest.raises(ToolIOError):
        glob_files(GlobCommand("*/../../*.txt"), confined)
    assert confined.glob_find("../*") == []
    assert confined.glob_find("*.txt") == ["inside.txt"]


def test_grep_reports_scan_cap(backend, monkeypatch):
    import tools.search_ops as search_ops

    monkeypatch.setattr(search_ops, "_GREP_SCAN_LIMIT", 2)
    out = grep(GrepCommand("(?i)important"), backend)
    assert out.startswith("Found at least 2 matches for pattern '(?i)important' (search stopped at 2):")

    monkeypatch.setattr(search_ops, "_GREP_SCAN_LIMIT", 3)
    assert grep(GrepCommand("(?i)important"), backend).startswith("Found 2 matches")
