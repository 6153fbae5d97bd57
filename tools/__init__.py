"""
Tool catalog, typed commands, and the execution engine for the task agent.
Tools use a Backend abstraction for file/command operations.
"""

from tools.commands import (  # noqa: F401
    Command,
    ReadCommand,
    GlobCommand,
    GrepCommand,
    ListCommand,
    EditCommand,
    WriteCommand,
    BashCommand,
    ParseCodeCommand,
    TOOL_NAMES,
    parse_tool_call,
)
from tools.gitignore import invalidate_gitignore_cache  # noqa: F401
from tools.schemas import (  # noqa: F401
    TOOL_DEFINITIONS,
    SAFE_TOOLS,
    TOOLS_REQUIRING_APPROVAL,
    tool_definitions,
)
from tools.dispatch import ToolEngine  # noqa: F401
