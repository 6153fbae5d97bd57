"""Shared helpers for the tools package."""

import contextlib
from typing import Iterator

from errors import NotFoundError, ToolIOError

MAX_OUTPUT_CHARS = 20000


@contextlib.contextmanager
def io_errors(path: str) -> Iterator[None]:
    """Translate backend OS/sandbox errors into ExecError subclasses."""
    try:
        yield
    except FileNotFoundError as e:
        raise NotFoundError(f"File not found: {path}") from e
    except IsADirectoryError as e:
        raise ToolIOError(f"Is a directory: {path}") from e
    except NotADirectoryError as e:
        raise ToolIOError(f"Not a directory: {path}") from e
    except PermissionError as e:
        raise ToolIOError(f"Permission denied: {path}") from e
    except (OSError, ValueError) as e:
        raise ToolIOError(f"{path}: {e}") from e


def truncate_output(output: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    """Keep head and tail of oversized tool output."""
    if len(output) <= limit:
        return output
    lines_out = output.split("\n")
    if len(lines_out) > 200:
        return (
            "\n".join(lines_out[:100])
            + f"\n\n... [{len(lines_out) - 150} lines truncated] ...\n\n"
            + "\n".join(lines_out[-50:])
        )
    return output[: limit // 2] + "\n\n... [truncated] ...\n\n" + output[-limit // 4:]
