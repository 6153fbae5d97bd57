"""File operation tools: Read, Edit, Write, plus diff previews for the mutating ones."""

import difflib
import logging
from typing import List, Sequence, Tuple

from backend import Backend
from errors import AmbiguousEditError, ExecError, NotFoundError, ReplacementCountError, ToolIOError
from tools._common import io_errors
from tools.commands import EditCommand, ReadCommand, WriteCommand

logger = logging.getLogger(__name__)

_DEFINITION_PREFIXES = (
    "class ", "def ", "async def ", "fn ", "pub fn ", "function ",
    "export function ", "export class ", "func ",
)
_IMPORT_SCAN_LINES = 50
_MAX_FULL_READ_LINES = 500
_HEAD_LINES, _TAIL_LINES = 80, 40


def _numbered(lines: Sequence[str], first: int) -> List[str]:
    """`first` is the 1-based number of lines[0]."""
    return [f"{n:6}|{text.rstrip()}" for n, text in enumerate(lines, start=first)]


def outline_lines(lines: List[str]) -> str:
    """Numbered import, definition and decorator lines; a language-agnostic outline."""
    keep = []
    for idx, raw in enumerate(lines):
        text = raw.strip()
        if idx < _IMPORT_SCAN_LINES and text.startswith(("import ", "from ")):
            keep.append(idx)
        elif text.startswith(_DEFINITION_PREFIXES):
            keep.append(idx)
        elif text.startswith("@") and idx + 1 < len(lines) \
                and lines[idx + 1].lstrip().startswith(("class ", "def ", "async def ")):
            keep.append(idx)
    return "\n".join(f"{idx + 1:6}|{lines[idx].rstrip()}" for idx in keep)


def _read_existing(path: str, b: Backend) -> str:
    with io_errors(path):
        if not b.file_exists(path):
            raise NotFoundError(f"File not found: {path}")
        if b.is_dir(path):
            raise ToolIOError(f"Is a directory: {path}")
        return b.read_file(path)


def read_file(cmd: ReadCommand, b: Backend) -> str:
    """Line-numbered file text; a window when offset/limit is given, an overview for big files."""
    lines = _read_existing(cmd.path, b).splitlines()
    total = len(lines)

    if cmd.offset is not None or cmd.limit is not None:
        first = max(cmd.offset or 1, 1)
        window = lines[first - 1:first - 1 + (cmd.limit or total)]
        if not window:
            return f"[{total} lines total] (offset {first} is past the end of the file)"
        return (f"[{total} lines total] (showing lines {first}-{first + len(window) - 1})\n"
                + "\n".join(_numbered(window, first)))

    if total <= _MAX_FULL_READ_LINES:
        return f"[{total} lines total]\n" + "\n".join(_numbered(lines, 1))

    tail_first = total - _TAIL_LINES + 1
    return "\n".join([
        f"[{total} lines total; file is large, showing overview + head + tail]",
        "[Use offset/limit to read specific sections]", "",
        "-- structure (classes, functions, imports) --", outline_lines(lines), "",
        f"-- first {_HEAD_LINES} lines --", "\n".join(_numbered(lines[:_HEAD_LINES], 1)),
        f"\n  ... ({total - _HEAD_LINES - _TAIL_LINES} lines omitted; "
        f"use offset={_HEAD_LINES + 1} limit=N to read more) ...\n",
        f"-- last {_TAIL_LINES} lines --", "\n".join(_numbered(lines[-_TAIL_LINES:], tail_first)),
    ])


def _compact_diff(before: str, after: str, path: str, max_lines: int = 200, fromfile: str = "") -> str:
    """Unified diff of two versions of a file, capped at max_lines."""
    diff = list(difflib.unified_diff(
        before.splitlines(keepends=True), after.splitlines(keepends=True),
        fromfile=fromfile or path, tofile=path, lineterm="",
    ))
    if len(diff) > max_lines:
        diff = diff[:max_lines] + [f"... ({len(diff) - max_lines} more diff lines)"]
    return "\n".join(line.rstrip("\r\n") for line in diff)


# ------------------------------------------------------------------
# Edit
# ------------------------------------------------------------------

def _plan_edit(cmd: EditCommand, b: Backend) -> Tuple[str, str, int]:
    """Validate an edit against the file. Returns (old_content, new_content, replacements)."""
    if cmd.old == "":
        raise ExecError("old_string must not be empty. Use Write to create or overwrite a file.")
    content = _read_existing(cmd.path, b)
    count = content.count(cmd.old)
    if count == 0:
        raise NotFoundError(
            f"old_string not found in {cmd.path}. Ensure it matches exactly, including "
            f"whitespace and indentation. Re-read the file to see current content."
        )
    if cmd.expected_replacements is None:
        if count > 1:
            raise AmbiguousEditError(cmd.path, count)
    elif count != cmd.expected_replacements:
        raise ReplacementCountError(cmd.path, cmd.expected_replacements, count)
    return content, content.replace(cmd.old, cmd.new), count


def preview_edit(cmd: EditCommand, b: Backend) -> str:
    """Diff the edit would produce, without writing."""
    old_content, new_content, _ = _plan_edit(cmd, b)
    return _compact_diff(old_content, new_content, cmd.path)


def edit_file(cmd: EditCommand, b: Backend) -> str:
    """Replace old_string with new_string and return the resulting diff.

    The file is only written once every check has passed.
    """
    old_content, new_content, replaced = _plan_edit(cmd, b)
    with io_errors(cmd.path):
        b.write_file(cmd.path, new_content)
    logger.info(f"Edited {cmd.path} ({replaced} replacement(s))")
    diff_text = _compact_diff(old_content, new_content, cmd.path)
    summary = f"Applied edit to {cmd.path}" + (f" ({replaced} replacements)" if replaced > 1 else "")
    if diff_text:
        return f"{summary}\n{diff_text}"
    return f"{summary} (no changes)"


# ------------------------------------------------------------------
# Write
# ------------------------------------------------------------------

def _previous_content(path: str, b: Backend) -> Tuple[str, bool]:
    with io_errors(path):
        if b.file_exists(path):
            if b.is_dir(path):
                raise ToolIOError(f"Is a directory: {path}")
            return b.read_file(path), False
    return "", True


def _write_diff(old_content: str, content: str, path: str, is_new: bool) -> str:
    return _compact_diff(old_content, content, path, fromfile="/dev/null" if is_new else "")


def preview_write(cmd: WriteCommand, b: Backend) -> str:
    old_content, is_new = _previous_content(cmd.path, b)
    return _write_diff(old_content, cmd.content, cmd.path, is_new)


def write_file(cmd: WriteCommand, b: Backend) -> str:
    """Create a new file or completely overwrite an existing file."""
    old_content, is_new = _previous_content(cmd.path, b)
    with io_errors(cmd.path):
        b.write_file(cmd.path, cmd.content)
    content = cmd.content
    line_count = content.count("\n") + (1 if content and not content.endswith("\n") else 0)
    logger.info(f"{'Created' if is_new else 'Wrote'} {cmd.path} ({line_count} lines)")
    summary = f"{'Created' if is_new else 'Wrote'} {line_count} lines to {cmd.path}"
    diff_text = _write_diff(old_content, content, cmd.path, is_new)
    if diff_text:
        return f"{summary}\n{diff_text}"
    return summary
