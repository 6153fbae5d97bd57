"""Shell tool: Bash."""

import logging

from backend import Backend
from config import app_config
from errors import ToolIOError
from tools._common import truncate_output
from tools.commands import BashCommand

logger = logging.getLogger(__name__)


def effective_timeout_ms(cmd: BashCommand) -> int:
    """Requested timeout clamped to the configured maximum."""
    requested = cmd.timeout_ms or app_config.bash_default_timeout_ms
    return min(requested, app_config.bash_max_timeout_ms)


def run_command(cmd: BashCommand, b: Backend) -> str:
    """Execute a shell command.

    A non-zero exit is reported as text, not raised, so the model can read
    stdout and stderr.
    """
    timeout_s = effective_timeout_ms(cmd) / 1000.0
    try:
        stdout, stderr, rc = b.run_command(cmd.command, cwd=".", timeout=timeout_s)
    except (OSError, ValueError) as e:
        raise ToolIOError(f"Failed to start command: {e}") from e

    if rc != 0:
        logger.info(f"Command exited with code {rc}: {cmd.command[:120]}")
        return truncate_output(
            f"Command failed with exit code: {rc}\nStdout: {stdout}\nStderr: {stderr}"
        )

    parts = []
    if stdout:
        parts.append(stdout)
    if stderr:
        parts.append(f"[stderr]\n{stderr}")
    output = "\n".join(parts) if parts else "(no output)"
    return truncate_output(output)
