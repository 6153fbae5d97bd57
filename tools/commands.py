"""
Typed tool commands and the parser that builds them from model output.

parse_tool_call() is the only place untrusted tool arguments become a
Command; everything downstream works with these dataclasses.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from errors import ToolParseError, UnknownToolError


@dataclass(frozen=True)
class ReadCommand:
    path: str
    offset: Optional[int] = None
    limit: Optional[int] = None

    tool_name = "Read"


@dataclass(frozen=True)
class GlobCommand:
    pattern: str
    path: Optional[str] = None

    tool_name = "Glob"


@dataclass(frozen=True)
class GrepCommand:
    pattern: str
    include: Optional[str] = None
    path: Optional[str] = None

    tool_name = "Grep"


@dataclass(frozen=True)
class ListCommand:
    path: str
    ignore: List[str] = field(default_factory=list)

    tool_name = "LS"


@dataclass(frozen=True)
class EditCommand:
    path: str
    old: str
    new: str
    expected_replacements: Optional[int] = None

    tool_name = "Edit"


@dataclass(frozen=True)
class WriteCommand:
    path: str
    content: str

    tool_name = "Write"


@dataclass(frozen=True)
class BashCommand:
    command: str
    timeout_ms: Optional[int] = None

    tool_name = "Bash"


@dataclass(frozen=True)
class ParseCodeCommand:
    root_dir: str
    query: str
    max_file_size: Optional[int] = None
    max_files: Optional[int] = None
    max_depth: Optional[int] = None

    tool_name = "ParseCode"


Command = Union[
    ReadCommand, GlobCommand, GrepCommand, ListCommand,
    EditCommand, WriteCommand, BashCommand, ParseCodeCommand,
]

# Commands gated behind the permission collaborator
APPROVAL_COMMANDS = (EditCommand, WriteCommand, BashCommand)


# ------------------------------------------------------------------
# Field readers
# ------------------------------------------------------------------

class _Args:
    """Strict accessor over one tool call's argument map."""

    def __init__(self, tool: str, raw: Any):
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise ToolParseError(tool, None, f"arguments must be an object, got {type(raw).__name__}")
        self.tool = tool
        self.raw = raw

    def _fail(self, name: str, reason: str) -> ToolParseError:
        return ToolParseError(self.tool, name, reason)

    def string(self, name: str, required: bool = True, allow_empty: bool = False) -> Optional[str]:
        value = self.raw.get(name)
        if value is None:
            if required:
                raise self._fail(name, "missing required field")
            return None
        if not isinstance(value, str):
            raise self._fail(name, f"expected string, got {type(value).__name__}")
        if not allow_empty and not value.strip():
            raise self._fail(name, "must not be empty")
        return value

    def integer(self, name: str, minimum: int = 0) -> Optional[int]:
        value = self.raw.get(name)
        if value is None:
            return None
        # bool is an int subclass; a JSON true is not a count
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self._fail(name, f"expected integer, got {type(value).__name__}")
        if isinstance(value, float):
            if not value.is_integer():
                raise self._fail(name, f"expected integer, got {value}")
            value = int(value)
        if value < minimum:
            raise self._fail(name, f"must be >= {minimum}, got {value}")
        return value

    def string_list(self, name: str) -> List[str]:
        value = self.raw.get(name)
        if value is None:
            return []
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise self._fail(name, "expected array of strings")
        return list(value)


# ------------------------------------------------------------------
# Per-tool parsers
# ------------------------------------------------------------------

def _parse_read(a: _Args) -> ReadCommand:
    return ReadCommand(path=a.string("file_path"), offset=a.integer("offset"), limit=a.integer("limit", minimum=1))


def _parse_glob(a: _Args) -> GlobCommand:
    return GlobCommand(pattern=a.string("pattern"), path=a.string("path", required=False))


def _parse_grep(a: _Args) -> GrepCommand:
    pattern = a.string("pattern")
    try:
        re.compile(pattern)
    except re.error as e:
        raise ToolParseError("Grep", "pattern", f"invalid regular expression: {e}") from e
    return GrepCommand(
        pattern=pattern,
        include=a.string("include", required=False),
        path=a.string("path", required=False),
    )


def _parse_ls(a: _Args) -> ListCommand:
    return ListCommand(path=a.string("path"), ignore=a.string_list("ignore"))


def _parse_edit(a: _Args) -> EditCommand:
    return EditCommand(
        path=a.string("file_path"),
        old=a.string("old_string", allow_empty=True),
        new=a.string("new_string", allow_empty=True),
        expected_replacements=a.integer("expected_replacements", minimum=1),
    )


def _parse_write(a: _Args) -> WriteCommand:
    return WriteCommand(path=a.string("file_path"), content=a.string("content", allow_empty=True))


def _parse_bash(a: _Args) -> BashCommand:
    return BashCommand(command=a.string("command"), timeout_ms=a.integer("timeout", minimum=1))


def _parse_parse_code(a: _Args) -> ParseCodeCommand:
    return ParseCodeCommand(
        root_dir=a.string("root_dir"),
        query=a.string("query"),
        max_file_size=a.integer("max_file_size", minimum=1),
        max_files=a.integer("max_files", minimum=1),
        max_depth=a.integer("max_depth"),
    )


_PARSERS: Dict[str, Callable[[_Args], Command]] = {
    "Read": _parse_read,
    "Glob": _parse_glob,
    "Grep": _parse_grep,
    "LS": _parse_ls,
    "Edit": _parse_edit,
    "Write": _parse_write,
    "Bash": _parse_bash,
    "ParseCode": _parse_parse_code,
}

TOOL_NAMES = tuple(_PARSERS)


def parse_tool_call(name: str, arguments: Any) -> Command:
    """Turn a tool name and its raw argument map into a typed Command.

    Raises UnknownToolError for names outside the catalog and
    ToolParseError for missing or mistyped fields. Has no side effects.
    """
    parser = _PARSERS.get(name)
    if parser is None:
        raise UnknownToolError(name)
    return parser(_Args(name, arguments))
