"""
Conversation log with ordering rules enforced on every mutation.

Rules:
- at most one system message, and it is always first;
- a tool message answers a call id requested by the latest assistant message
  and not yet answered;
- no user or assistant message is appended while tool calls are unanswered.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

from api_client import Message, Role, ToolCallRequest, ToolResult
from errors import ConversationError

logger = logging.getLogger(__name__)

PLACEHOLDER_RESULT = "(result unavailable; the tool call was interrupted)"


class ConversationStore:
    """Ordered message log owned by a single executor."""

    def __init__(self, messages: Optional[Sequence[Message]] = None):
        self._messages: List[Message] = []
        if messages:
            self.replace(messages)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    @property
    def system_message(self) -> Optional[Message]:
        if self._messages and self._messages[0].role == Role.SYSTEM:
            return self._messages[0]
        return None

    def has_user_message(self) -> bool:
        return any(m.role == Role.USER for m in self._messages)

    def pending_tool_call_ids(self) -> List[str]:
        """Ids requested by the latest assistant message that have no result yet."""
        for idx in range(len(self._messages) - 1, -1, -1):
            msg = self._messages[idx]
            if msg.role == Role.ASSISTANT:
                answered = {
                    m.tool_call_id for m in self._messages[idx + 1:] if m.role == Role.TOOL
                }
                return [c.id for c in msg.tool_calls if c.id not in answered]
        return []

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_system(self, content: str) -> None:
        """Install or replace the system message; it always ends up first."""
        self._messages = [m for m in self._messages if m.role != Role.SYSTEM]
        self._messages.insert(0, Message.system(content))

    def _require_no_pending(self, what: str) -> None:
        pending = self.pending_tool_call_ids()
        if pending:
            raise ConversationError(
                f"Cannot append {what}: tool calls {', '.join(pending)} have no result yet"
            )

    def append_user(self, content: str) -> None:
        self._require_no_pending("a user message")
        self._messages.append(Message.user(content))

    def append_assistant(self, content: str, tool_calls: Optional[Sequence[ToolCallRequest]] = None) -> None:
        self._require_no_pending("an assistant message")
        calls = list(tool_calls or [])
        ids = [c.id for c in calls]
        if any(not i for i in ids):
            raise ConversationError("Every tool call must carry an id before it is recorded")
        if len(set(ids)) != len(ids):
            raise ConversationError(f"Duplicate tool call ids in one batch: {ids}")
        self._messages.append(Message.assistant(content, calls))

    def append_tool_result(self, result: ToolResult) -> None:
        pending = self.pending_tool_call_ids()
        if result.tool_call_id not in pending:
            raise ConversationError(
                f"Tool result {result.tool_call_id!r} does not answer a pending tool call"
            )
        self._messages.append(Message.tool(result))

    def replace(self, messages: Sequence[Message]) -> None:
        """Swap in a whole history, normalizing system placement."""
        systems = [m for m in messages if m.role == Role.SYSTEM]
        if len(systems) > 1:
            raise ConversationError(f"History has {len(systems)} system messages; at most one is allowed")
        rest = [m for m in messages if m.role != Role.SYSTEM]
        self._messages = systems + rest
        self.repair()

    def repair(self) -> int:
        """Make the history valid to send. Returns the number of fixes applied.

        Unanswered calls followed by more conversation get placeholder error
        results; unanswered calls at the very end are stripped from their
        assistant message; tool results that answer nothing are dropped.
        """
        fixes = 0
        out: List[Message] = []
        open_ids: List[str] = []

        def _close_open() -> None:
            nonlocal fixes
            for cid in open_ids:
                out.append(Message.tool(ToolResult(cid, PLACEHOLDER_RESULT, is_error=True)))
                fixes += 1
            open_ids.clear()

        for msg in self._messages:
            if msg.role == Role.TOOL:
                if msg.tool_call_id in open_ids:
                    open_ids.remove(msg.tool_call_id)
                    out.append(msg)
                else:
                    logger.warning(f"Dropping orphaned tool result {msg.tool_call_id!r}")
                    fixes += 1
                continue
            _close_open()
            if msg.role == Role.ASSISTANT and msg.tool_calls:
                open_ids.extend(c.id for c in msg.tool_calls if c.id)
            out.append(msg)

        if open_ids:
            # trailing calls that were never answered: drop the requests themselves
            for idx in range(len(out) - 1, -1, -1):
                if out[idx].role == Role.ASSISTANT:
                    kept = [c for c in out[idx].tool_calls if c.id not in open_ids]
                    fixes += len(out[idx].tool_calls) - len(kept)
                    out[idx] = Message.assistant(out[idx].content, kept)
                    break
            open_ids.clear()

        if fixes:
            logger.warning(f"Repaired conversation history ({fixes} fix(es))")
        self._messages = out
        return fixes

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self._messages]

    @classmethod
    def from_dicts(cls, data: Sequence[Dict[str, Any]]) -> "ConversationStore":
        return cls([Message.from_dict(d) for d in data])
