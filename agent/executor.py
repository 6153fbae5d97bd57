"""
Agent executor: drives one task from the user's prompt to a final answer.

Each round appends the assistant's tool-call batch, runs the calls in order,
appends one result per call, and asks the model for the next step. As rounds
accumulate the next call increasingly carries a completion-check schema;
the loop ends on a completion verdict, when the model stops calling tools,
or at the round cap.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence

from api_client import ApiClient, Completion, CompletionOptions, Message, ToolCallRequest, ToolResult
from backend import Backend, LocalBackend
from config import app_config, model_config
from errors import ConversationError, ExecError, ParseError, TaskTimeoutError
from tools import ToolEngine, tool_definitions

from .completion import COMPLETION_SCHEMA, FINAL_SUMMARY_SCHEMA, process_response, should_request_completion
from .conversation import ConversationStore
from .events import PendingPermission, ProgressNotifier
from .prompts import add_working_directory_to_prompt, compose_system_prompt, strip_working_directory

logger = logging.getLogger(__name__)

ApprovalCallback = Callable[[PendingPermission], Awaitable[bool]]


class ExecutorStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    AWAITING_TOOL = "awaiting_tool"
    AWAITING_COMPLETION_CHECK = "awaiting_completion_check"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ExecutorState:
    """Per-task progress, reset at the start of every execute()"""
    status: ExecutorStatus = ExecutorStatus.IDLE
    loop_count: int = 0
    task_completed: bool = False
    limit_reached: bool = False
    answer: str = ""
    error: Optional[str] = None


class AgentExecutor:
    """Runs tasks against an ApiClient with the built-in tool catalog.

    The executor owns its conversation; only the ApiClient may be shared
    between executors. Keep the instance alive to continue the same
    conversation with follow-up tasks.
    """

    def __init__(
        self,
        api_client: ApiClient,
        working_directory: Optional[str] = None,
        backend: Optional[Backend] = None,
        notifier: Optional[ProgressNotifier] = None,
        request_approval: Optional[ApprovalCallback] = None,
        max_rounds: Optional[int] = None,
        options: Optional[CompletionOptions] = None,
    ):
        self.api_client = api_client
        self.backend = backend or LocalBackend(working_directory or app_config.working_directory)
        self.notifier = notifier
        self.engine = ToolEngine(self.backend, notifier)
        self.tool_definitions = tool_definitions()
        self.max_rounds = max_rounds if max_rounds is not None else app_config.max_tool_iterations
        self.options = options or CompletionOptions(
            temperature=model_config.temperature,
            top_p=model_config.top_p,
            max_tokens=model_config.max_tokens,
            tools=self.tool_definitions,
            require_tool_use=False,
        )
        self.conversation = ConversationStore()
        self.state = ExecutorState()
        self._request_approval = request_approval
        self._batch_seq = 0

    @property
    def working_directory(self) -> str:
        return self.backend.working_directory

    def _notify(self, message: str) -> None:
        if self.notifier is not None:
            self.notifier.send(message)

    # ------------------------------------------------------------------
    # Conversation setup
    # ------------------------------------------------------------------

    def set_working_directory(self, working_directory: str) -> None:
        """Point tools at a new directory and update the system prompt's section."""
        self.backend = LocalBackend(working_directory)
        self.engine = ToolEngine(self.backend, self.notifier)
        system = self.conversation.system_message
        if system is not None:
            base = strip_working_directory(system.content)
            self.conversation.set_system(add_working_directory_to_prompt(base, self.working_directory))

    def add_system_message(self, content: str) -> None:
        self.conversation.set_system(add_working_directory_to_prompt(content, self.working_directory))

    def add_user_message(self, content: str) -> None:
        self.conversation.append_user(content)

    def set_conversation_history(self, history: Sequence[Message]) -> None:
        self.conversation.replace(history)
        system = self.conversation.system_message
        if system is not None:
            self.conversation.set_system(add_working_directory_to_prompt(system.content, self.working_directory))

    def get_conversation_history(self) -> List[Message]:
        return self.conversation.messages

    def cancel(self) -> bool:
        """Kill an in-flight shell command. The caller cancels the execute() task itself."""
        return self.engine.cancel()

    # ------------------------------------------------------------------
    # Task execution
    # ------------------------------------------------------------------

    async def execute(self, task: Optional[str] = None, timeout: Optional[float] = None) -> str:
        """Run the conversation to a final answer.

        With a task, the system prompt is seeded (if absent) and the task is
        appended as a user message. timeout is wall-clock seconds for the
        whole call (0 disables it); on expiry the running shell command is
        killed and TaskTimeoutError is raised.
        """
        if task is not None:
            if self.conversation.system_message is None:
                self.add_system_message(compose_system_prompt())
            self.add_user_message(task)
        if not self.conversation.has_user_message():
            raise ConversationError("Nothing to execute: the conversation has no user message")

        limit = app_config.task_timeout if timeout is None else timeout
        self.state = ExecutorState(status=ExecutorStatus.RUNNING)
        try:
            if limit and limit > 0:
                return await asyncio.wait_for(self._run(), timeout=limit)
            return await self._run()
        except asyncio.TimeoutError as e:
            self._fail(f"timed out after {limit:g}s")
            raise TaskTimeoutError(limit) from e
        except asyncio.CancelledError:
            self._fail("cancelled")
            raise
        except Exception as e:
            self._fail(str(e))
            raise

    def _fail(self, reason: str) -> None:
        logger.error(f"Task failed: {reason}")
        self.engine.cancel()
        self.conversation.repair()
        self.state.status = ExecutorStatus.FAILED
        self.state.error = reason

    async def _run(self) -> str:
        self._notify(f"[debug] Working directory: {self.working_directory}")
        options = self.options

        completion = await self._complete(options, None)
        calls = self._assign_ids(completion.tool_calls)
        if not calls:
            self.conversation.append_assistant(completion.text)
            return self._finish(completion.text, completed=False)

        reply_text = completion.text
        current_content = completion.text
        loop_count = 0
        task_completed = False

        while calls:
            loop_count += 1
            if loop_count > self.max_rounds:
                self._notify(
                    f"Reached maximum number of tool call loops ({self.max_rounds}). Forcing completion."
                )
                logger.warning(f"Round cap of {self.max_rounds} reached; forcing completion")
                self.state.limit_reached = True
                task_completed = True
                break

            self.state.loop_count = loop_count
            self._notify(f"Tool iteration {loop_count}/{self.max_rounds}")
            logger.debug(f"Round {loop_count}: {len(calls)} tool call(s)")

            self.conversation.append_assistant(reply_text, calls)
            results = await self._execute_tool_calls(calls)

            if should_request_completion(loop_count, self.max_rounds):
                self.state.status = ExecutorStatus.AWAITING_COMPLETION_CHECK
                next_options = dataclasses.replace(options, json_schema=COMPLETION_SCHEMA)
            else:
                next_options = options

            completion = await self._complete(next_options, results)
            self.state.status = ExecutorStatus.RUNNING
            reply_text = completion.text
            current_content, is_complete = process_response(completion.text)
            calls = self._assign_ids(completion.tool_calls)

            if is_complete:
                logger.info(f"Model reported the task complete after round {loop_count}")
                task_completed = True
            if task_completed or not calls:
                break

            if loop_count >= self.max_rounds - 10 and loop_count % 5 == 0:
                self._notify("Approaching maximum iterations, requesting task completion check.")

        if not task_completed and not calls and loop_count < self.max_rounds - 1:
            self._notify("Task appears complete, requesting final summary.")
            self.state.status = ExecutorStatus.AWAITING_COMPLETION_CHECK
            final = await self._complete(dataclasses.replace(options, json_schema=FINAL_SUMMARY_SCHEMA), None)
            summary, _ = process_response(final.text)
            if summary.strip():
                current_content = summary

        # unexecuted calls (verdict or cap) are not recorded
        self.conversation.append_assistant(current_content)
        return self._finish(current_content, completed=task_completed)

    def _finish(self, answer: str, completed: bool) -> str:
        self.state.status = ExecutorStatus.DONE
        self.state.task_completed = completed
        self.state.answer = answer
        return answer

    async def _complete(self, options: CompletionOptions, prior_results: Optional[List[ToolResult]]) -> Completion:
        return await self.api_client.complete_with_tools(self.conversation.messages, options, prior_results)

    def _assign_ids(self, calls: Sequence[ToolCallRequest]) -> List[ToolCallRequest]:
        """Give every call in a batch a unique id, once, when the batch arrives.

        Missing or duplicate ids become tool_{batch}_{index}; the same
        object then flows into the conversation, the results and any retry.
        """
        if not calls:
            return []
        self._batch_seq += 1
        seen = set()
        out: List[ToolCallRequest] = []
        for index, call in enumerate(calls):
            call_id = call.id
            if not call_id or call_id in seen:
                call_id = f"tool_{self._batch_seq}_{index}"
            seen.add(call_id)
            out.append(ToolCallRequest(name=call.name, arguments=dict(call.arguments or {}), id=call_id))
        return out

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------

    async def _execute_tool_calls(self, calls: Sequence[ToolCallRequest]) -> List[ToolResult]:
        """Run a batch sequentially, in order; later calls see earlier edits."""
        self.state.status = ExecutorStatus.AWAITING_TOOL
        results: List[ToolResult] = []
        for call in calls:
            result = await self._execute_one(call)
            self.conversation.append_tool_result(result)
            results.append(result)
        self.state.status = ExecutorStatus.RUNNING
        return results

    async def _execute_one(self, call: ToolCallRequest) -> ToolResult:
        loop = asyncio.get_running_loop()
        self.engine.announce(call.name)
        try:
            cmd = self.engine.parse(call)
        except ParseError as e:
            logger.warning(f"Failed to parse tool call {call.name}: {e}")
            self._notify(f"[error] Failed to parse tool call: {e}")
            return ToolResult(
                call.id,
                f"ERROR PARSING TOOL CALL: {e}. Please check the format of your arguments and try again.",
                is_error=True,
            )

        try:
            if self.engine.needs_approval(cmd):
                pending = await loop.run_in_executor(None, self.engine.pending_permission, call, cmd)
                if pending.diff_preview:
                    self._notify(pending.diff_preview)
                if not await self._approve(pending):
                    logger.info(f"Permission denied: {pending.human_description}")
                    self._notify(f"[error] Permission denied: {pending.human_description}")
                    return ToolResult(call.id, f"Permission denied: {pending.human_description}", is_error=True)
            output = await loop.run_in_executor(None, self.engine.execute, cmd)
        except ExecError as e:
            return ToolResult(call.id, f"ERROR EXECUTING TOOL: {e}", is_error=True)
        except Exception as e:
            logger.exception(f"Tool execution error: {call.name}")
            self._notify(f"[error] {call.name}: {e}")
            return ToolResult(call.id, f"ERROR EXECUTING TOOL: {e}", is_error=True)
        return ToolResult(call.id, output)

    async def _approve(self, pending: PendingPermission) -> bool:
        if self._request_approval is not None:
            return bool(await self._request_approval(pending))
        if pending.tool_name == "Bash":
            return app_config.auto_approve_commands
        return app_config.auto_approve_edits
