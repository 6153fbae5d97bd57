"""
Model-facing data types and the ApiClient interface.

The executor only talks to an ApiClient; concrete providers (see
bedrock_service.BedrockApiClient) translate these types to their wire format.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class ToolCallRequest:
    """A single tool invocation requested by the model. id may be absent."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCallRequest":
        return cls(name=data["name"], arguments=dict(data.get("arguments") or {}), id=data.get("id"))


@dataclass
class ToolResult:
    """Answer to exactly one ToolCallRequest, correlated by tool_call_id"""
    tool_call_id: str
    output: str
    is_error: bool = False


@dataclass
class Message:
    """One conversation entry.

    Assistant messages may carry the tool-call batch they requested; tool
    messages carry the id of the call they answer.
    """
    role: Role
    content: str = ""
    tool_calls: List[ToolCallRequest] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    is_error: bool = False

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Optional[Sequence[ToolCallRequest]] = None) -> "Message":
        return cls(Role.ASSISTANT, content, list(tool_calls or []))

    @classmethod
    def tool(cls, result: ToolResult) -> "Message":
        return cls(Role.TOOL, result.output, tool_call_id=result.tool_call_id, is_error=result.is_error)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            d["tool_calls"] = [c.to_dict() for c in self.tool_calls]
        if self.tool_call_id is not None:
            d["tool_call_id"] = self.tool_call_id
            d["is_error"] = self.is_error
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            role=Role(data["role"]),
            content=data.get("content") or "",
            tool_calls=[ToolCallRequest.from_dict(c) for c in data.get("tool_calls") or []],
            tool_call_id=data.get("tool_call_id"),
            is_error=bool(data.get("is_error", False)),
        )


@dataclass(frozen=True)
class ToolDefinition:
    """Immutable tool description advertised to the model"""
    name: str
    description: str
    input_schema: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass
class CompletionOptions:
    """Per-call generation settings.

    json_schema is a JSON Schema document (as a string) the reply should
    conform to. Providers that cannot combine it with tools drop one of the
    two rather than failing.
    """
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    tools: Optional[List[ToolDefinition]] = None
    require_tool_use: bool = False
    json_schema: Optional[str] = None


@dataclass
class Completion:
    """Model reply: generated text plus zero or more tool-call requests"""
    text: str = ""
    tool_calls: List[ToolCallRequest] = field(default_factory=list)


@dataclass
class HttpResponse:
    """Raw provider response as seen by the retry layer"""
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    @property
    def text(self) -> str:
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8", errors="replace")
        return str(self.body)


class ApiClient(ABC):
    """Interface to an LLM backend"""

    @abstractmethod
    async def complete(self, messages: List[Message], options: CompletionOptions) -> str:
        """Generate text only."""
        ...

    @abstractmethod
    async def complete_with_tools(
        self,
        messages: List[Message],
        options: CompletionOptions,
        prior_tool_results: Optional[List[ToolResult]] = None,
    ) -> Completion:
        """Generate text and possibly a batch of tool calls.

        prior_tool_results repeats the results of the last tool round for
        providers that need them outside the message list; they are also
        present in `messages` as tool messages.
        """
        ...
