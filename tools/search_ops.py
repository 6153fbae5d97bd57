"""Search, discovery, and navigation tools: Glob, Grep, LS, ParseCode."""

import ast
import fnmatch
import os
import pathlib
import re
import logging
from typing import Callable, List, Optional, Tuple

from backend import Backend
from errors import NotFoundError, ToolIOError
from tools._common import io_errors
from tools.commands import GlobCommand, GrepCommand, ListCommand, ParseCodeCommand
from tools.file_ops import outline_lines
from tools.gitignore import rules_for

logger = logging.getLogger(__name__)

_MAX_GLOB_RESULTS = 500
_MAX_GREP_RESULTS = 100
_GREP_SCAN_LIMIT = 5000


def _display_path(rel_to_wd: str) -> str:
    return rel_to_wd.replace(os.sep, "/")


def _rel_to_wd(b: Backend, path: str) -> str:
    rel = os.path.relpath(b.resolve_path(path), b.working_directory)
    return "" if rel == "." else rel


# ------------------------------------------------------------------
# Glob
# ------------------------------------------------------------------

def glob_files(cmd: GlobCommand, b: Backend) -> str:
    """Find files matching a glob pattern under an optional root, respecting .gitignore."""
    root = cmd.path or "."
    if ".." in re.split(r"[\\/]", cmd.pattern):
        raise ToolIOError(f"Glob pattern may not leave the working directory: {cmd.pattern!r}")
    with io_errors(root):
        if not b.is_dir(root):
            if not b.file_exists(root):
                raise NotFoundError(f"Directory not found: {root}")
            raise ToolIOError(f"Not a directory: {root}")
        try:
            raw_matches = b.glob_find(cmd.pattern, root)
        except NotImplementedError as e:
            raise ToolIOError(f"Unsupported glob pattern {cmd.pattern!r}: {e}") from e

    root_rel = _rel_to_wd(b, root)
    rules = rules_for(b.working_directory)
    matches: List[str] = []
    for m in raw_matches:
        rel = os.path.join(root_rel, m) if root_rel else m
        if rules.under_noise_dir(rel) or rules.ignores(rel, False):
            continue
        matches.append(_display_path(rel))

    output = f"Found {len(matches)} files matching pattern '{cmd.pattern}':\n\n"
    for i, path in enumerate(matches[:_MAX_GLOB_RESULTS]):
        output += f"{i + 1}. {path}\n"
    if len(matches) > _MAX_GLOB_RESULTS:
        output += f"... [{len(matches) - _MAX_GLOB_RESULTS} more files truncated]\n"
    return output


# ------------------------------------------------------------------
# Grep
# ------------------------------------------------------------------

def _expand_braces(pattern: str) -> List[str]:
    """Expand one level of shell-style braces, recursively: '*.{py,toml}' -> ['*.py', '*.toml']."""
    m = re.search(r"\{([^{}]*)\}", pattern)
    if not m:
        return [pattern]
    head, tail = pattern[:m.start()], pattern[m.end():]
    out: List[str] = []
    for alt in m.group(1).split(","):
        out.extend(_expand_braces(head + alt + tail))
    return out


def _include_filter(include: Optional[str]) -> Optional[Callable[[str], bool]]:
    if not include:
        return None
    globs = _expand_braces(include)
    return lambda name: any(fnmatch.fnmatch(name, g) for g in globs)


def grep(cmd: GrepCommand, b: Backend) -> str:
    """Return path:line:text for every line matching a regex."""
    regex = re.compile(cmd.pattern)
    root = cmd.path or "."
    with io_errors(root):
        if not b.file_exists(root):
            raise NotFoundError(f"Path not found: {root}")
        results: List[Tuple[str, int, str]] = b.search(
            regex, root,
            include=_include_filter(cmd.include),
            skip=rules_for(b.working_directory).as_skip(),
            max_matches=_GREP_SCAN_LIMIT,
        )

    if len(results) >= _GREP_SCAN_LIMIT:
        output = (f"Found at least {len(results)} matches for pattern '{cmd.pattern}' "
                  f"(search stopped at {_GREP_SCAN_LIMIT}):\n\n")
    else:
        output = f"Found {len(results)} matches for pattern '{cmd.pattern}':\n\n"
    for path, line_num, line in results[:_MAX_GREP_RESULTS]:
        output += f"{_display_path(path)}:{line_num}:{line}\n"
    if len(results) > _MAX_GREP_RESULTS:
        output += f"\n... [{len(results) - _MAX_GREP_RESULTS} more matches truncated]\n"
    return output


# ------------------------------------------------------------------
# LS
# ------------------------------------------------------------------

def list_directory(cmd: ListCommand, b: Backend) -> str:
    """Enumerate a directory, tagging entries DIR/FILE."""
    with io_errors(cmd.path):
        if not b.file_exists(cmd.path):
            raise NotFoundError(f"Directory not found: {cmd.path}")
        if not b.is_dir(cmd.path):
            raise ToolIOError(f"Not a directory: {cmd.path}")
        entries = b.list_dir(cmd.path)

    base_rel = _rel_to_wd(b, cmd.path)
    rules = rules_for(b.working_directory)
    output = f"Directory listing for '{cmd.path}':\n"
    index = 0
    for e in entries:
        name = e["name"]
        is_dir = e["type"] == "directory"
        if any(fnmatch.fnmatch(name, pat) for pat in cmd.ignore):
            continue
        rel = os.path.join(base_rel, name) if base_rel else name
        if rules.ignores(rel, is_dir):
            continue
        index += 1
        output += f"{index:3}. [{'DIR' if is_dir else 'FILE'}] {name}\n"
    return output


# ------------------------------------------------------------------
# ParseCode: lightweight structural outline
# ------------------------------------------------------------------

_SOURCE_EXTENSIONS = {
    ".py", ".rs", ".js", ".jsx", ".ts", ".tsx", ".go", ".java",
    ".c", ".h", ".cc", ".cpp", ".hpp", ".rb",
}
_DEFAULT_MAX_FILE_SIZE = 1_000_000
_DEFAULT_MAX_FILES = 25
_DEFAULT_MAX_DEPTH = 3
_QUERY_STOPWORDS = {
    "the", "and", "for", "all", "show", "me", "of", "in", "parse", "analyze",
    "files", "file", "code", "implementation", "with", "what", "how", "does",
}


def _python_outline(source: str) -> Optional[str]:
    try:
        tree = ast.parse(source)
    except SyntaxError:
        return None

    def _args(fn: ast.AST) -> str:
        return ", ".join(a.arg for a in fn.args.args)

    lines: List[str] = []
    imports: List[str] = []
    for node in tree.body:
        if isinstance(node, ast.Import):
            imports.extend(a.name for a in node.names)
        elif isinstance(node, ast.ImportFrom):
            imports.append(node.module or ".")
        elif isinstance(node, ast.ClassDef):
            bases = ", ".join(ast.unparse(base) for base in node.bases)
            lines.append(f"{node.lineno:6}| class {node.name}({bases})" if bases
                         else f"{node.lineno:6}| class {node.name}")
            for item in node.body:
                if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    prefix = "async def" if isinstance(item, ast.AsyncFunctionDef) else "def"
                    lines.append(f"{item.lineno:6}|     {prefix} {item.name}({_args(item)})")
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            prefix = "async def" if isinstance(node, ast.AsyncFunctionDef) else "def"
            lines.append(f"{node.lineno:6}| {prefix} {node.name}({_args(node)})")
    if imports:
        lines.insert(0, "imports: " + ", ".join(dict.fromkeys(imports)))
    return "\n".join(lines)


def _outline(path: str, source: str) -> str:
    if path.endswith(".py"):
        outline = _python_outline(source)
        if outline is not None:
            return outline
    return outline_lines(source.splitlines())


def _query_terms(query: str) -> List[str]:
    words = re.findall(r"[A-Za-z_][A-Za-z0-9_]+", query.lower())
    return [w for w in words if len(w) >= 3 and w not in _QUERY_STOPWORDS]


def parse_code(cmd: ParseCodeCommand, b: Backend) -> str:
    """Outline source files under root_dir, ranked by relevance to the query."""
    max_file_size = cmd.max_file_size or _DEFAULT_MAX_FILE_SIZE
    max_files = cmd.max_files or _DEFAULT_MAX_FILES
    max_depth = _DEFAULT_MAX_DEPTH if cmd.max_depth is None else cmd.max_depth

    with io_errors(cmd.root_dir):
        if not b.file_exists(cmd.root_dir):
            raise NotFoundError(f"Path not found: {cmd.root_dir}")
        if b.is_file(cmd.root_dir):
            candidates = [_rel_to_wd(b, cmd.root_dir)]
        else:
            root_rel = _rel_to_wd(b, cmd.root_dir)
            base_depth = len(pathlib.PurePath(root_rel).parts)
            candidates = [
                rel for rel in b.walk_files(cmd.root_dir, rules_for(b.working_directory).as_skip())
                if len(pathlib.PurePath(rel).parts) - base_depth - 1 <= max_depth
            ]

    terms = _query_terms(cmd.query)
    scored: List[Tuple[int, str, str]] = []
    skipped_large = 0
    for rel in candidates:
        if os.path.splitext(rel)[1].lower() not in _SOURCE_EXTENSIONS:
            continue
        try:
            if b.file_size(rel) > max_file_size:
                skipped_large += 1
                continue
            source = b.read_file(rel)
        except (OSError, ValueError) as e:
            logger.debug(f"ParseCode: skipping {rel}: {e}")
            continue
        outline = _outline(rel, source)
        haystack = (rel + "\n" + outline).lower()
        score = sum(1 for t in terms if t in haystack)
        scored.append((score, rel, outline))

    if any(s for s, _, _ in scored):
        scored = [item for item in scored if item[0] > 0]
    scored.sort(key=lambda item: (-item[0], item[1]))
    selected = scored[:max_files]

    parts = [
        f"# Code structure for '{cmd.root_dir}'",
        f"Query: {cmd.query}",
        f"{len(selected)} of {len(scored)} source files shown"
        + (f"; {skipped_large} skipped as larger than {max_file_size} bytes" if skipped_large else ""),
        "",
    ]
    for _, rel, outline in selected:
        parts.append(f"## {_display_path(rel)}")
        parts.append("```")
        parts.append(outline or "(no top-level definitions)")
        parts.append("```")
        parts.append("")
    return "\n".join(parts)
