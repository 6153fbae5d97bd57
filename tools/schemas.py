"""Tool schema definitions (Bedrock/Anthropic Messages API) advertised to the model.

The catalog is a stable contract: names and parameter names must not change
between releases.
"""

from typing import Any, Dict, List

from api_client import ToolDefinition


def _obj(properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


TOOL_DEFINITIONS: List[ToolDefinition] = [
    ToolDefinition(
        name="Read",
        description="Reads a file from the local filesystem. Returns line-numbered content. "
                    "Use offset/limit to read a slice of a large file.",
        input_schema=_obj({
            "file_path": {"type": "string", "description": "Path to the file to read (absolute or relative to the working directory)"},
            "offset": {"type": "integer", "description": "The 1-based line number to start reading from (optional)"},
            "limit": {"type": "integer", "description": "The number of lines to read (optional)"},
        }, ["file_path"]),
    ),
    ToolDefinition(
        name="Glob",
        description="Fast file pattern matching tool using glob patterns like '**/*.py'",
        input_schema=_obj({
            "pattern": {"type": "string", "description": "The glob pattern to match files against"},
            "path": {"type": "string", "description": "The directory to search in (optional)"},
        }, ["pattern"]),
    ),
    ToolDefinition(
        name="Grep",
        description="Fast content search tool using regular expressions. "
                    "Returns path:line:text for every matching line.",
        input_schema=_obj({
            "pattern": {"type": "string", "description": "The regular expression pattern to search for in file contents"},
            "include": {"type": "string", "description": "File pattern to include in the search (e.g. \"*.py\", \"*.{py,toml}\")"},
            "path": {"type": "string", "description": "The directory to search in (optional)"},
        }, ["pattern"]),
    ),
    ToolDefinition(
        name="LS",
        description="Lists files and directories in a given path",
        input_schema=_obj({
            "path": {"type": "string", "description": "The path to the directory to list"},
            "ignore": {
                "type": "array",
                "items": {"type": "string"},
                "description": "List of glob patterns to ignore (optional)",
            },
        }, ["path"]),
    ),
    ToolDefinition(
        name="Edit",
        description="Edits a file by replacing one string with another. old_string must match "
                    "exactly once unless expected_replacements is given, in which case it must "
                    "match exactly that many times.",
        input_schema=_obj({
            "file_path": {"type": "string", "description": "The path to the file to modify"},
            "old_string": {"type": "string", "description": "The text to replace (must be unique within the file)"},
            "new_string": {"type": "string", "description": "The text to replace it with"},
            "expected_replacements": {"type": "integer", "description": "Number of occurrences to replace (optional, default 1)"},
        }, ["file_path", "old_string", "new_string"]),
    ),
    ToolDefinition(
        name="Write",
        description="Completely replaces a file with new content, creating it if needed",
        input_schema=_obj({
            "file_path": {"type": "string", "description": "The path to the file to write"},
            "content": {"type": "string", "description": "The content to write to the file"},
        }, ["file_path", "content"]),
    ),
    ToolDefinition(
        name="Bash",
        description="Executes a shell command in the working directory. Non-zero exit codes "
                    "are reported with stdout and stderr.",
        input_schema=_obj({
            "command": {"type": "string", "description": "The command to execute"},
            "timeout": {"type": "integer", "description": "Optional timeout in milliseconds (max 600000)"},
        }, ["command"]),
    ),
    ToolDefinition(
        name="ParseCode",
        description="Produces a structural outline (imports, classes, functions with line numbers) "
                    "of source files under a directory, focused by a natural language query.",
        input_schema=_obj({
            "root_dir": {"type": "string", "description": "A single file or the directory to outline"},
            "query": {"type": "string", "description": "What to look for, e.g. 'Show me the implementation of SessionStore'"},
            "max_file_size": {"type": "integer", "description": "Optional maximum file size in bytes (default: 1,000,000)"},
            "max_files": {"type": "integer", "description": "Optional maximum number of files (default: 25)"},
            "max_depth": {"type": "integer", "description": "Optional maximum directory depth (default: 3)"},
        }, ["root_dir", "query"]),
    ),
]

TOOLS_REQUIRING_APPROVAL = {"Edit", "Write", "Bash"}
SAFE_TOOLS = {"Read", "Glob", "Grep", "LS", "ParseCode"}


def tool_definitions() -> List[ToolDefinition]:
    """The catalog handed to the model on every turn."""
    return list(TOOL_DEFINITIONS)
