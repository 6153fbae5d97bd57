"""
File and process access for the tools.

Tools never touch the filesystem or spawn processes directly; they go
through a Backend so the working-directory sandbox and process cleanup
live in one place.
"""

import contextlib
import logging
import os
import pathlib
import signal
import stat
import subprocess
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterator, List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)

# skip(rel_path, name, is_dir) -> True to drop the entry (and prune a directory)
SkipFn = Callable[[str, str, bool], bool]


class Backend(ABC):
    """Operations the tools need, rooted at one working directory.

    Relative paths are resolved against `working_directory`; implementations
    reject anything that resolves outside it with ValueError.
    """

    @property
    @abstractmethod
    def working_directory(self) -> str: ...

    @abstractmethod
    def list_dir(self, path: str) -> List[Dict[str, Any]]:
        """Sorted entries as {"name", "type": "file" | "directory", "size" (files only)}."""

    @abstractmethod
    def read_file(self, path: str) -> str: ...

    @abstractmethod
    def write_file(self, path: str, content: str) -> None:
        """Replace the file in one rename, creating parent directories."""

    @abstractmethod
    def file_exists(self, path: str) -> bool: ...

    @abstractmethod
    def is_dir(self, path: str) -> bool: ...

    @abstractmethod
    def is_file(self, path: str) -> bool: ...

    @abstractmethod
    def file_size(self, path: str) -> int: ...

    @abstractmethod
    def run_command(self, command: str, cwd: str, timeout: float = 120) -> Tuple[str, str, int]:
        """(stdout, stderr, exit status); the status is -1 when the timeout fired."""

    def cancel_running_command(self) -> bool:
        return False

    @abstractmethod
    def walk_files(self, path: str, skip: Optional[SkipFn] = None) -> Iterator[str]:
        """Files below `path`, relative to the working directory, in sorted order."""

    @abstractmethod
    def glob_find(self, pattern: str, cwd: str) -> List[str]:
        """Files matching `pattern`, relative to `cwd`."""

    def search(
        self,
        regex: Pattern[str],
        path: str,
        include: Optional[Callable[[str], bool]] = None,
        skip: Optional[SkipFn] = None,
        max_matches: Optional[int] = None,
    ) -> List[Tuple[str, int, str]]:
        """(rel_path, line_number, line) for each matching line; binary files are skipped."""
        if self.is_file(path):
            candidates = [os.path.relpath(self.resolve_path(path), self.working_directory)]
        else:
            candidates = self.walk_files(path, skip)

        hits: List[Tuple[str, int, str]] = []
        for rel in candidates:
            if include is not None and not include(os.path.basename(rel)):
                continue
            try:
                text = self.read_file(rel)
            except (OSError, ValueError) as e:
                logger.debug(f"search: skipping unreadable {rel}: {e}")
                continue
            if "\x00" in text:
                continue
            for lineno, line in enumerate(text.splitlines(), start=1):
                if not regex.search(line):
                    continue
                hits.append((rel, lineno, line))
                if max_matches is not None and len(hits) >= max_matches:
                    return hits
        return hits

    def resolve_path(self, path: str) -> str:
        return os.path.normpath(os.path.join(self.working_directory, path))


# ============================================================
# Local Backend
# ============================================================

class LocalBackend(Backend):
    """The machine the agent runs on."""

    def __init__(self, working_directory: str = "."):
        self._root = os.path.abspath(working_directory)
        self._running: Optional[subprocess.Popen] = None

    @property
    def working_directory(self) -> str:
        return self._root

    def _full(self, path: str) -> str:
        full = self.resolve_path(path) if path not in ("", ".") else self._root
        if full != self._root and not full.startswith(self._root.rstrip(os.sep) + os.sep):
            raise ValueError(f"Path escapes working directory: {path!r}")
        return full

    def list_dir(self, path: str) -> List[Dict[str, Any]]:
        entries = []
        with os.scandir(self._full(path)) as it:
            for entry in sorted(it, key=lambda e: e.name):
                if entry.is_dir():
                    entries.append({"name": entry.name, "type": "directory"})
                elif entry.is_file():
                    entries.append({"name": entry.name, "type": "file", "size": entry.stat().st_size})
        return entries

    def read_file(self, path: str) -> str:
        with open(self._full(path), encoding="utf-8", errors="replace", newline="") as f:
            return f.read()

    def write_file(self, path: str, content: str) -> None:
        target = self._full(path)
        parent = os.path.dirname(target)
        os.makedirs(parent, exist_ok=True)
        # keep the permissions of a file being replaced
        keep_mode = stat.S_IMODE(os.stat(target).st_mode) if os.path.exists(target) else None

        fd, staging = tempfile.mkstemp(dir=parent, prefix=f".{os.path.basename(target)}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            if keep_mode is not None:
                os.chmod(staging, keep_mode)
            os.replace(staging, target)
        except BaseException:
            with contextlib.suppress(OSError):
                os.remove(staging)
            raise

    def file_exists(self, path: str) -> bool:
        return os.path.exists(self._full(path))

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(self._full(path))

    def is_file(self, path: str) -> bool:
        return os.path.isfile(self._full(path))

    def file_size(self, path: str) -> int:
        return os.path.getsize(self._full(path))

    def run_command(self, command: str, cwd: str = ".", timeout: float = 120) -> Tuple[str, str, int]:
        proc = subprocess.Popen(
            ["sh", "-c", command], cwd=self._full(cwd),
            stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
            text=True, errors="replace",
            start_new_session=True,  # timeout/cancel kills the whole group
        )
        self._running = proc
        try:
            out, err = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Command timed out after {timeout:g}s: {command[:120]}")
            _kill_group(proc)
            try:
                out, err = proc.communicate(timeout=5)
            except subprocess.TimeoutExpired:
                out, err = "", ""
            return out or "", f"Command timed out after {timeout:g}s\n{err or ''}", -1
        finally:
            self._running = None
        return out or "", err or "", proc.returncode

    def cancel_running_command(self) -> bool:
        proc = self._running
        if proc is None or proc.poll() is not None:
            return False
        logger.info(f"Cancelling running command (pid {proc.pid})")
        _kill_group(proc)
        return True

    def walk_files(self, path: str, skip: Optional[SkipFn] = None) -> Iterator[str]:
        for dirpath, dirnames, filenames in os.walk(self._full(path)):
            rel_dir = os.path.relpath(dirpath, self._root)
            prefix = "" if rel_dir == "." else rel_dir + os.sep
            if skip is not None:
                dirnames[:] = [d for d in dirnames if not skip(prefix + d, d, True)]
            dirnames.sort()
            for name in sorted(filenames):
                if skip is None or not skip(prefix + name, name, False):
                    yield prefix + name

    def glob_find(self, pattern: str, cwd: str = ".") -> List[str]:
        base = pathlib.Path(self._full(cwd))
        inside = self._root.rstrip(os.sep) + os.sep
        return [
            str(p.relative_to(base)) for p in sorted(base.glob(pattern))
            if os.path.normpath(p).startswith(inside) and p.is_file()
        ]


def _kill_group(proc: subprocess.Popen) -> None:
    with contextlib.suppress(OSError):
        os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
    with contextlib.suppress(OSError):
        proc.kill()
