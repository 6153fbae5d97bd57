"""
Amazon Bedrock service module.
Implements the ApiClient interface for Anthropic Claude models on Bedrock,
with retries handled by RetryingInvoker.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from api_client import (
    ApiClient,
    Completion,
    CompletionOptions,
    HttpResponse,
    Message,
    Role,
    ToolCallRequest,
    ToolResult,
)
from api_retry import RetryingInvoker, TransportError
from config import aws_config, get_max_output_tokens, model_config, supports_both_sampling
from errors import AgentError, ProviderError, ResponseParseError

logger = logging.getLogger(__name__)

# 503 is how Bedrock reports ServiceUnavailable / model overload
BEDROCK_RETRY_STATUSES = frozenset({429, 503, 529})

NO_CONTENT = "(no content)"


class BedrockError(AgentError):
    """Raised when the Bedrock client cannot be created"""
    pass


def _ensure_non_empty_content(content: Any) -> Any:
    """API requires non-empty content for every message."""
    if isinstance(content, str):
        return content if content.strip() else NO_CONTENT
    if isinstance(content, list):
        out = []
        for b in content:
            if isinstance(b, dict) and b.get("type") == "text" and not (b.get("text") or "").strip():
                continue
            out.append(b)
        return out if out else [{"type": "text", "text": NO_CONTENT}]
    return NO_CONTENT


def _as_blocks(content: Any) -> List[Dict[str, Any]]:
    if isinstance(content, list):
        return list(content)
    return [{"type": "text", "text": content}]


def format_messages(messages: List[Message]) -> Dict[str, Any]:
    """Convert conversation messages to Anthropic system text + message blocks.

    Tool results travel as tool_result blocks inside a user turn; adjacent
    turns with the same role are merged since the API requires alternation.
    """
    system_parts: List[str] = []
    formatted: List[Dict[str, Any]] = []

    def _push(role: str, content: Any) -> None:
        if formatted and formatted[-1]["role"] == role:
            merged = _as_blocks(formatted[-1]["content"]) + _as_blocks(content)
            formatted[-1]["content"] = merged
        else:
            formatted.append({"role": role, "content": content})

    for msg in messages:
        if msg.role == Role.SYSTEM:
            system_parts.append(msg.content)
        elif msg.role == Role.USER:
            _push("user", msg.content)
        elif msg.role == Role.ASSISTANT:
            if msg.tool_calls:
                blocks: List[Dict[str, Any]] = []
                if msg.content.strip():
                    blocks.append({"type": "text", "text": msg.content})
                for call in msg.tool_calls:
                    blocks.append({
                        "type": "tool_use",
                        "id": call.id,
                        "name": call.name,
                        "input": call.arguments or {},
                    })
                _push("assistant", blocks)
            else:
                _push("assistant", msg.content)
        elif msg.role == Role.TOOL:
            block: Dict[str, Any] = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": msg.content or NO_CONTENT,
            }
            if msg.is_error:
                block["is_error"] = True
            _push("user", [block])

    for m in formatted:
        m["content"] = _ensure_non_empty_content(m["content"])
    return {"system": "\n\n".join(p for p in system_parts if p), "messages": formatted}


def _response_format_instruction(json_schema: str) -> str:
    return (
        "RESPONSE FORMAT: if you are not calling tools, reply with ONLY a JSON object "
        "(no prose, no code fences) that conforms to this JSON Schema:\n"
        f"{json_schema}"
    )


def parse_response_body(payload: Dict[str, Any]) -> Completion:
    """Collect text and tool_use blocks from an Anthropic response body."""
    content = payload.get("content")
    if not isinstance(content, list):
        raise ResponseParseError("Response has no content list")
    result = Completion()
    for block in content:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type", "")
        if block_type == "text":
            result.text += block.get("text", "")
        elif block_type == "tool_use":
            name = block.get("name")
            if not name:
                raise ResponseParseError("tool_use block without a name")
            args = block.get("input") or {}
            if not isinstance(args, dict):
                raise ResponseParseError(f"tool_use input for {name} is not an object")
            result.tool_calls.append(ToolCallRequest(name=name, arguments=args, id=block.get("id") or None))
    return result


class BedrockApiClient(ApiClient):
    """
    ApiClient for Anthropic models on Amazon Bedrock.
    botocore's own retries are disabled; RetryingInvoker owns the policy.
    """

    def __init__(
        self,
        model_id: Optional[str] = None,
        region: Optional[str] = None,
        client: Optional[Any] = None,
        invoker: Optional[RetryingInvoker] = None,
    ):
        self.model_id = model_id or model_config.model_id
        self.region = region or aws_config.region
        self.client = client or self._create_client()
        self.invoker = invoker or RetryingInvoker(self._transport, retry_statuses=BEDROCK_RETRY_STATUSES)
        logger.info(f"BedrockApiClient initialized with model: {self.model_id}")

    def _create_client(self) -> Any:
        """Create and configure the Bedrock runtime client"""
        try:
            session = boto3.Session(**aws_config.session_kwargs(self.region))
            return session.client("bedrock-runtime", config=Config(retries={"max_attempts": 1}))

        except NoCredentialsError:
            raise BedrockError("AWS credentials not configured.")
        except Exception as e:
            raise BedrockError(f"Failed to initialize Bedrock client: {e}")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _invoke(self, request: Dict[str, Any]) -> HttpResponse:
        try:
            response = self.client.invoke_model(
                modelId=request["modelId"],
                body=request["body"],
                contentType="application/json",
                accept="application/json",
            )
        except ClientError as e:
            meta = e.response.get("ResponseMetadata", {})
            error = e.response.get("Error", {})
            status = meta.get("HTTPStatusCode") or 500
            body = f"{error.get('Code', 'Unknown')}: {error.get('Message', str(e))}"
            return HttpResponse(status_code=status, headers=dict(meta.get("HTTPHeaders") or {}), body=body)
        except (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError, ConnectTimeoutError) as e:
            raise TransportError(str(e)) from e

        meta = response.get("ResponseMetadata", {})
        return HttpResponse(
            status_code=meta.get("HTTPStatusCode", 200),
            headers=dict(meta.get("HTTPHeaders") or {}),
            body=response["body"].read(),
        )

    async def _transport(self, request: Dict[str, Any]) -> HttpResponse:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._invoke, request)

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def build_request_body(
        self,
        messages: List[Message],
        options: CompletionOptions,
        with_tools: bool = True,
    ) -> Dict[str, Any]:
        formatted = format_messages(messages)
        max_output = get_max_output_tokens(self.model_id)
        max_tokens = min(options.max_tokens or model_config.max_tokens, max_output)

        body: Dict[str, Any] = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": max_tokens,
            "messages": formatted["messages"],
        }

        if options.temperature is not None:
            body["temperature"] = options.temperature
            if options.top_p is not None and supports_both_sampling(self.model_id):
                body["top_p"] = options.top_p
        elif options.top_p is not None:
            body["top_p"] = options.top_p

        system = formatted["system"]
        if options.json_schema:
            instruction = _response_format_instruction(options.json_schema)
            system = f"{system}\n\n{instruction}" if system else instruction
        if system:
            body["system"] = system

        if with_tools and options.tools:
            body["tools"] = [t.to_dict() for t in options.tools]
            body["tool_choice"] = {"type": "any"} if options.require_tool_use else {"type": "auto"}

        return body

    async def _send(self, body: Dict[str, Any]) -> Completion:
        request = {"modelId": self.model_id, "body": json.dumps(body)}
        logger.info(f"Invoking model: {self.model_id}")
        response = await self.invoker.call(request)
        if not response.ok:
            logger.error(f"Bedrock API error: {response.status_code} - {response.text}")
            raise ProviderError(response.status_code, response.text)
        try:
            payload = json.loads(response.text)
        except ValueError as e:
            raise ResponseParseError(f"Response body is not JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ResponseParseError("Response body is not a JSON object")
        completion = parse_response_body(payload)
        usage = payload.get("usage") or {}
        logger.debug(
            f"stop_reason={payload.get('stop_reason')} "
            f"input_tokens={usage.get('input_tokens', 0)} output_tokens={usage.get('output_tokens', 0)}"
        )
        return completion

    # ------------------------------------------------------------------
    # ApiClient
    # ------------------------------------------------------------------

    async def complete(self, messages: List[Message], options: CompletionOptions) -> str:
        completion = await self._send(self.build_request_body(messages, options, with_tools=False))
        return completion.text

    async def complete_with_tools(
        self,
        messages: List[Message],
        options: CompletionOptions,
        prior_tool_results: Optional[List[ToolResult]] = None,
    ) -> Completion:
        # tool results already travel in `messages` as tool_result blocks
        return await self._send(self.build_request_body(messages, options))
