"""Tests for the Bedrock ApiClient: wire format, error mapping and response parsing."""

import asyncio
import io
import json

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from api_client import CompletionOptions, Message, ToolCallRequest, ToolResult
from api_retry import RetryingInvoker
from bedrock_service import NO_CONTENT, BedrockApiClient, format_messages, parse_response_body
from errors import NetworkError, ProviderError, ResponseParseError
from tools import tool_definitions


class FakeRuntime:
    """Stands in for a boto3 bedrock-runtime client."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.bodies = []

    def invoke_model(self, modelId, body, contentType, accept):
        self.bodies.append(json.loads(body))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return {
            "ResponseMetadata": {"HTTPStatusCode": 200, "HTTPHeaders": {}},
            "body": io.BytesIO(json.dumps(outcome).encode()),
        }


def _throttled():
    return ClientError(
        {
            "Error": {"Code": "ThrottlingException", "Message": "Too many requests"},
            "ResponseMetadata": {"HTTPStatusCode": 429, "HTTPHeaders": {"retry-after": "0"}},
        },
        "InvokeModel",
    )


async def _no_sleep(seconds):
    return None


def _client(runtime, model_id="us.anthropic.claude-sonnet-4-20250514-v1:0"):
    client = BedrockApiClient(model_id=model_id, client=runtime)
    client.invoker = RetryingInvoker(client._transport, max_retries=2, max_jitter=0.0,
                                     retry_statuses={429, 503, 529}, sleep=_no_sleep)
    return client


def _history():
    return [
        Message.system("be helpful"),
        Message.user("task"),
        Message.assistant("reading", [ToolCallRequest("Read", {"file_path": "a"}, "t1"),
                                      ToolCallRequest("Read", {"file_path": "b"}, "t2")]),
        Message.tool(ToolResult("t1", "A")),
        Message.tool(ToolResult("t2", "", is_error=True)),
    ]


def test_format_messages_groups_tool_results():
    wire = format_messages(_history())
    assert wire["system"] == "be helpful"
    assert [m["role"] for m in wire["messages"]] == ["user", "assistant", "user"]
    assistant = wire["messages"][1]["content"]
    assert assistant[0] == {"type": "text", "text": "reading"}
    assert [b["id"] for b in assistant[1:]] == ["t1", "t2"]
    results = wire["messages"][2]["content"]
    assert [b["tool_use_id"] for b in results] == ["t1", "t2"]
    assert results[1]["is_error"] is True
    assert results[1]["content"] == NO_CONTENT


def test_format_messages_fills_empty_content():
    wire = format_messages([Message.user("  "), Message.assistant("")])
    assert wire["messages"][0]["content"] == NO_CONTENT
    assert wire["messages"][1]["content"] == NO_CONTENT


def test_sampling_respects_model_support():
    options = CompletionOptions(temperature=0.25, top_p=0.95, max_tokens=4096)
    sonnet4 = _client(FakeRuntime([{}])).build_request_body([Message.user("x")], options)
    assert sonnet4["temperature"] == 0.25
    assert "top_p" not in sonnet4
    haiku = _client(FakeRuntime([{}]), "anthropic.claude-3-haiku-20240307-v1:0")
    body = haiku.build_request_body([Message.user("x")], options)
    assert (body["temperature"], body["top_p"]) == (0.25, 0.95)


def test_json_schema_goes_into_system_prompt_with_tools():
    options = CompletionOptions(tools=tool_definitions(), json_schema='{"type": "object"}', require_tool_use=True)
    body = _client(FakeRuntime([{}])).build_request_body(_history(), options)
    assert body["system"].startswith("be helpful")
    assert '{"type": "object"}' in body["system"]
    assert len(body["tools"]) == 8
    assert body["tool_choice"] == {"type": "any"}
    assert body["anthropic_version"] == "bedrock-2023-05-31"


def test_complete_with_tools_parses_blocks():
    runtime = FakeRuntime([{
        "content": [
            {"type": "text", "text": "Checking."},
            {"type": "tool_use", "id": "toolu_1", "name": "Grep", "input": {"pattern": "x"}},
        ],
        "stop_reason": "tool_use",
    }])
    completion = asyncio.run(_client(runtime).complete_with_tools([Message.user("go")], CompletionOptions()))
    assert completion.text == "Checking."
    assert completion.tool_calls == [ToolCallRequest("Grep", {"pattern": "x"}, "toolu_1")]


def test_complete_sends_no_tools():
    runtime = FakeRuntime([{"content": [{"type": "text", "text": "hi"}]}])
    options = CompletionOptions(tools=tool_definitions())
    assert asyncio.run(_client(runtime).complete([Message.user("go")], options)) == "hi"
    assert "tools" not in runtime.bodies[0]


def test_throttling_is_retried():
    runtime = FakeRuntime([_throttled(), {"content": [{"type": "text", "text": "ok"}]}])
    completion = asyncio.run(_client(runtime).complete_with_tools([Message.user("go")], CompletionOptions()))
    assert completion.text == "ok"
    assert len(runtime.bodies) == 2


def test_persistent_throttling_becomes_provider_error():
    runtime = FakeRuntime([_throttled()])
    with pytest.raises(ProviderError) as exc:
        asyncio.run(_client(runtime).complete_with_tools([Message.user("go")], CompletionOptions()))
    assert exc.value.status == 429
    assert len(runtime.bodies) == 3


def test_connection_failure_becomes_network_error():
    runtime = FakeRuntime([EndpointConnectionError(endpoint_url="https://bedrock")])
    with pytest.raises(NetworkError):
        asyncio.run(_client(runtime).complete_with_tools([Message.user("go")], CompletionOptions()))


def test_bad_response_body():
    with pytest.raises(ResponseParseError):
        parse_response_body({"content": "not a list"})
    with pytest.raises(ResponseParseError):
        parse_response_body({"content": [{"type": "tool_use", "input": {}}]})
