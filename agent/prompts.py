"""
System prompt composition.
Prompt fragments are kept as separate module constants and assembled by
compose_system_prompt(); the working directory is appended as its own section.
"""

from tools import TOOL_DEFINITIONS


# Tool names for system prompt so the agent always knows what it can call
AVAILABLE_TOOL_NAMES = ", ".join(t.name for t in TOOL_DEFINITIONS)

WORKING_DIRECTORY_HEADER = "## WORKING DIRECTORY"


# ============================================================
# Prompt modules
# ============================================================

_MOD_IDENTITY = """You are an autonomous software engineering agent working directly on a real codebase on the user's machine. You complete the user's task end to end: you investigate, change files, run commands, and verify the result.

You are methodical: you read before editing, you verify after changing, and you never guess when you can check."""

_MOD_TOOL_POLICY = """<tool_policy>
TOOL SELECTION (use specialized tools, not Bash):
- Read files: Read (never cat, head, tail)
- Edit files: Edit (never sed, awk, perl -i)
- Create or fully rewrite files: Write (never echo, heredoc, tee)
- Search file contents: Grep. Find files by name: Glob. List a directory: LS.
- Outline the structure of a codebase: ParseCode.
- Reserve Bash for running tests, builds, package managers, git, and other system commands.

FILE OPERATIONS:
- Always Read a file before editing it.
- Edit replaces old_string exactly once. If old_string appears several times, add surrounding context to make it unique, or pass expected_replacements with the exact count.
- For large files (>500 lines) use offset/limit for targeted reads.
- Tool calls in one response run in order, so a later call sees the effect of an earlier one.

ERRORS:
- A tool result starting with ERROR describes what went wrong. Fix the arguments and try again instead of repeating the same call.
</tool_policy>"""

_MOD_COMPLETION = """<completion>
- When the task is done, stop calling tools and reply with a concise summary of what you did and what you found.
- When asked for a JSON object with taskComplete and finalSummary, reply with only that JSON object. Set taskComplete to true only if nothing is left to do.
</completion>"""

_MOD_TONE_AND_STYLE = """<tone_and_style>
- Be concise and direct. No emoji unless the user requests it.
- Prioritize technical accuracy over agreement. If the approach is wrong, say so.
- Don't apologize repeatedly. If something unexpected happens, explain and proceed.
</tone_and_style>"""


def compose_system_prompt() -> str:
    """Assemble the base system prompt (without working directory)."""
    parts = [
        _MOD_IDENTITY,
        _MOD_TOOL_POLICY,
        _MOD_COMPLETION,
        _MOD_TONE_AND_STYLE,
        f"<tools_available>{AVAILABLE_TOOL_NAMES}</tools_available>",
    ]
    return "\n\n".join(parts)


def add_working_directory_to_prompt(prompt: str, working_directory: str) -> str:
    """Append the working directory section once; prompts that already have it are returned as is."""
    if WORKING_DIRECTORY_HEADER in prompt:
        return prompt
    section = (
        f"{WORKING_DIRECTORY_HEADER}\n"
        f"You are operating in: {working_directory}\n"
        f"Relative paths in tool arguments are resolved against this directory."
    )
    return f"{prompt.rstrip()}\n\n{section}"


def strip_working_directory(prompt: str) -> str:
    """Remove a previously appended working directory section."""
    idx = prompt.find(WORKING_DIRECTORY_HEADER)
    if idx == -1:
        return prompt
    return prompt[:idx].rstrip()
