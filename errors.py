"""
Error taxonomy for the task agent.

Model-call failures (NetworkError, ProviderError, ResponseParseError) and
TaskTimeoutError abort a task. ParseError/ExecError raised while handling a
tool call are turned into tool-result text by the executor and never escape.
"""

from typing import Optional


class AgentError(Exception):
    """Base class for all task agent errors"""
    pass


# ------------------------------------------------------------------
# Model invocation
# ------------------------------------------------------------------

class NetworkError(AgentError):
    """Transport failure that survived every retry"""

    def __init__(self, attempts: int, last_error: str):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Network error after {attempts} attempts: {last_error}")


class ProviderError(AgentError):
    """Non-2xx response from the model provider"""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"API error: {status} - {body}")


# ------------------------------------------------------------------
# Parsing
# ------------------------------------------------------------------

class ParseError(AgentError):
    """Malformed input: tool arguments or a provider response body"""
    pass


class ToolParseError(ParseError):
    """A tool call's arguments are missing a field or have the wrong type"""

    def __init__(self, tool_name: str, field: Optional[str], reason: str):
        self.tool_name = tool_name
        self.field = field
        self.reason = reason
        where = f"{tool_name}.{field}" if field else tool_name
        super().__init__(f"{where}: {reason}")


class UnknownToolError(ParseError):
    """The model asked for a tool that is not in the catalog"""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class ResponseParseError(ParseError):
    """The provider returned a body we could not decode"""
    pass


# ------------------------------------------------------------------
# Tool execution
# ------------------------------------------------------------------

class ExecError(AgentError):
    """Filesystem or process failure while executing a tool"""
    pass


class NotFoundError(ExecError):
    pass


class AmbiguousEditError(ExecError):
    """old_string occurs more than once and no replacement count was given"""

    def __init__(self, path: str, count: int):
        self.path = path
        self.count = count
        super().__init__(
            f"Found {count} occurrences of old_string in {path}. "
            f"Provide more surrounding context to make it unique, "
            f"or set expected_replacements to {count}."
        )


class ReplacementCountError(ExecError):
    def __init__(self, path: str, expected: int, actual: int):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Expected {expected} replacements in {path} but found {actual} occurrences of old_string"
        )


class ToolIOError(ExecError):
    pass


# ------------------------------------------------------------------
# Task level
# ------------------------------------------------------------------

class TaskTimeoutError(AgentError):
    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Task timed out after {timeout:g}s")


class ConversationError(AgentError):
    """An operation would break the conversation's ordering rules"""
    pass
