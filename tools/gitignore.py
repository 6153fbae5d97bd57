"""Which paths the search tools leave out: VCS/build clutter plus the root .gitignore."""

import logging
import os
import pathlib
from typing import Dict, Optional

import pathspec

from backend import SkipFn

logger = logging.getLogger(__name__)

NOISE_DIRS = frozenset({
    ".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv",
    ".mypy_cache", ".pytest_cache", ".tox", ".eggs", "target",
    ".next", ".nuxt", ".cache", "htmlcov",
})

BINARY_SUFFIXES = frozenset({".pyc", ".pyo", ".so", ".dylib", ".o", ".a", ".class"})


class IgnoreRules:
    """Path filter for one working directory."""

    def __init__(self, spec: Optional[pathspec.PathSpec] = None):
        self.spec = spec

    @classmethod
    def from_root(cls, root: str) -> "IgnoreRules":
        source = os.path.join(root, ".gitignore")
        if not os.path.isfile(source):
            return cls()
        try:
            with open(source, encoding="utf-8", errors="replace") as f:
                return cls(pathspec.PathSpec.from_lines("gitwildmatch", f))
        except (OSError, ValueError) as e:
            logger.debug(f"Ignoring unparsable {source}: {e}")
            return cls()

    def ignores(self, rel_path: str, is_dir: bool) -> bool:
        name = os.path.basename(rel_path)
        if is_dir and name in NOISE_DIRS:
            return True
        if not is_dir and os.path.splitext(name)[1] in BINARY_SUFFIXES:
            return True
        if self.spec is None:
            return False
        candidate = rel_path.replace(os.sep, "/") + ("/" if is_dir else "")
        return self.spec.match_file(candidate)

    def under_noise_dir(self, rel_path: str) -> bool:
        """True when any parent component is a NOISE_DIRS entry."""
        return any(part in NOISE_DIRS for part in pathlib.PurePath(rel_path).parts[:-1])

    def as_skip(self) -> SkipFn:
        """Adapter for Backend.walk_files / Backend.search."""
        return lambda rel_path, _name, is_dir: self.ignores(rel_path, is_dir)


_rules_by_root: Dict[str, IgnoreRules] = {}


def rules_for(working_directory: str) -> IgnoreRules:
    root = os.path.abspath(working_directory)
    rules = _rules_by_root.get(root)
    if rules is None:
        rules = _rules_by_root[root] = IgnoreRules.from_root(root)
    return rules


def invalidate_gitignore_cache(working_directory: Optional[str] = None) -> None:
    """Forget parsed .gitignore files, for one root or all of them."""
    if working_directory is None:
        _rules_by_root.clear()
    else:
        _rules_by_root.pop(os.path.abspath(working_directory), None)
