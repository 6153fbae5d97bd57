"""Tool execution engine: parse, preview, approve-gate, and execute typed commands."""

import logging
from typing import Callable, Dict, Optional, Type

from api_client import ToolCallRequest
from backend import Backend
from errors import ExecError
from tools.commands import (
    APPROVAL_COMMANDS,
    BashCommand,
    Command,
    EditCommand,
    GlobCommand,
    GrepCommand,
    ListCommand,
    ParseCodeCommand,
    ReadCommand,
    WriteCommand,
    parse_tool_call,
)
from tools.file_ops import edit_file, preview_edit, preview_write, read_file, write_file
from tools.search_ops import glob_files, grep, list_directory, parse_code
from tools.shell_ops import run_command

logger = logging.getLogger(__name__)

_IMPLEMENTATIONS: Dict[Type, Callable[[Command, Backend], str]] = {
    ReadCommand: read_file,
    GlobCommand: glob_files,
    GrepCommand: grep,
    ListCommand: list_directory,
    EditCommand: edit_file,
    WriteCommand: write_file,
    BashCommand: run_command,
    ParseCodeCommand: parse_code,
}


class ToolEngine:
    """Executes typed commands against a Backend.

    The notifier is any object with a non-blocking send(str); progress
    markers go there and nowhere else.
    """

    def __init__(self, backend: Backend, notifier: Optional[object] = None):
        self.backend = backend
        self.notifier = notifier

    def _notify(self, message: str) -> None:
        if self.notifier is not None:
            self.notifier.send(message)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def parse(call: ToolCallRequest) -> Command:
        return parse_tool_call(call.name, call.arguments)

    # ------------------------------------------------------------------
    # Permission support
    # ------------------------------------------------------------------

    @staticmethod
    def needs_approval(cmd: Command) -> bool:
        return isinstance(cmd, APPROVAL_COMMANDS)

    @staticmethod
    def describe(cmd: Command) -> str:
        """One-line human description of what a command will do."""
        if isinstance(cmd, EditCommand):
            return f"Modify file '{cmd.path}'"
        if isinstance(cmd, WriteCommand):
            return f"Overwrite file '{cmd.path}'"
        if isinstance(cmd, BashCommand):
            return f"Execute command: '{cmd.command}'"
        if isinstance(cmd, ReadCommand):
            return f"Read file '{cmd.path}'"
        return f"Execute tool: {cmd.tool_name}"

    def preview(self, cmd: Command) -> Optional[str]:
        """Diff a file mutation would produce, without committing it.

        Returns None for commands that do not change files. Raises the same
        ExecError the real execution would.
        """
        if isinstance(cmd, EditCommand):
            return preview_edit(cmd, self.backend)
        if isinstance(cmd, WriteCommand):
            return preview_write(cmd, self.backend)
        return None

    def pending_permission(self, call: ToolCallRequest, cmd: Command) -> "PendingPermission":
        from agent.events import PendingPermission
        return PendingPermission(
            tool_name=cmd.tool_name,
            raw_args=dict(call.arguments or {}),
            human_description=self.describe(cmd),
            diff_preview=self.preview(cmd),
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def announce(self, tool_name: str) -> None:
        self._notify(f"⏺ [{tool_name}] Executing {tool_name}...")

    def execute(self, cmd: Command) -> str:
        """Run a command. Returns result text; raises ExecError on failure."""
        impl = _IMPLEMENTATIONS[type(cmd)]
        try:
            output = impl(cmd, self.backend)
        except ExecError as e:
            logger.warning(f"{cmd.tool_name} failed: {e}")
            self._notify(f"[error] {cmd.tool_name}: {e}")
            raise
        self._notify("[TOOL_EXECUTED]")
        return output

    def cancel(self) -> bool:
        """Kill an in-flight shell command, if any."""
        return self.backend.cancel_running_command()
