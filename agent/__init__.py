"""
Agent package - the task execution loop and its supporting pieces.

- events: PendingPermission and the ProgressNotifier channel
- prompts: System prompt modules and composition
- completion: Completion-check schedule and structured-reply handling
- conversation: ConversationStore, the validated message log
- executor: AgentExecutor, the tool-calling loop
"""

from .events import PendingPermission, ProgressNotifier
from .prompts import (
    compose_system_prompt,
    add_working_directory_to_prompt,
    strip_working_directory,
    AVAILABLE_TOOL_NAMES,
)
from .completion import (
    COMPLETION_SCHEMA,
    FINAL_SUMMARY_SCHEMA,
    completion_interval,
    should_request_completion,
    process_response,
)
from .conversation import ConversationStore
from .executor import AgentExecutor, ExecutorState, ExecutorStatus

__all__ = [
    # Main executor
    "AgentExecutor",
    "ExecutorState",
    "ExecutorStatus",

    # Data types
    "PendingPermission",
    "ProgressNotifier",
    "ConversationStore",

    # Completion policy
    "COMPLETION_SCHEMA",
    "FINAL_SUMMARY_SCHEMA",
    "completion_interval",
    "should_request_completion",
    "process_response",

    # Prompt system
    "compose_system_prompt",
    "add_working_directory_to_prompt",
    "strip_working_directory",
    "AVAILABLE_TOOL_NAMES",
]
