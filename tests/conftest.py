import json
from contextlib import asynccontextmanager

import pytest

from toolstream.errors import ExecutionError
from toolstream.history import ConversationHistory
from toolstream.provider import ModelProvider
from toolstream.state import ConversationState
from toolstream.tools import ToolSpec


# ---------------------------------------------------------------------------
# SSE payload builders (mirror the chat-completions chunk shape)
# ---------------------------------------------------------------------------

DONE = b"data: [DONE]\n\n"


def sse(payload: dict) -> bytes:
    """One ``data:`` line carrying *payload*."""
    return f"data: {json.dumps(payload)}\n\n".encode()


def content_payload(text: str) -> dict:
    return {"choices": [{"delta": {"content": text}}]}


def tool_call_payload(
    index: int,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
    type: str | None = None,
) -> dict:
    element: dict = {"index": index}
    if call_id is not None:
        element["id"] = call_id
    if type is not None:
        element["type"] = type
    function = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    if function:
        element["function"] = function
    return {"choices": [{"delta": {"tool_calls": [element]}}]}


def make_text_response(content: str, pieces: int = 1) -> list[bytes]:
    """Response body streaming *content* in roughly equal pieces."""
    size = max(1, -(-len(content) // pieces))
    parts = [content[i:i + size] for i in range(0, len(content), size)] or [""]
    return [sse(content_payload(p)) for p in parts] + [DONE]


def make_tool_call_response(
    name: str,
    args: dict,
    call_id: str = "call_1",
    content: str | None = None,
) -> list[bytes]:
    """Response body with a single tool call, arguments split in two."""
    return make_multi_tool_call_response([(name, args, call_id)], content=content)


def make_multi_tool_call_response(
    calls: list[tuple[str, dict, str]],
    content: str | None = None,
) -> list[bytes]:
    """Response body with several tool calls.

    Each item in *calls* is ``(name, args_dict, call_id)``.  The header of
    every call is sent first, then the argument halves interleaved.
    """
    body = []
    if content:
        body.append(sse(content_payload(content)))
    encoded = [json.dumps(args) for _, args, _ in calls]
    for index, (name, _, call_id) in enumerate(calls):
        body.append(sse(tool_call_payload(
            index, call_id=call_id, name=name, arguments="", type="function",
        )))
    for index, raw in enumerate(encoded):
        body.append(sse(tool_call_payload(index, arguments=raw[:len(raw) // 2])))
    for index, raw in enumerate(encoded):
        body.append(sse(tool_call_payload(index, arguments=raw[len(raw) // 2:])))
    body.append(DONE)
    return body


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------

class MockProvider(ModelProvider):
    """Provider that streams pre-queued response bodies. No network calls.

    Each queued response is a list of byte chunks; an exception in the list
    is raised at that point of the stream, and an exception instead of a
    list is raised when the request is opened.
    """

    def __init__(self):
        self.responses: list = []
        self.call_log: list[dict] = []

    @asynccontextmanager
    async def stream_completion(self, model, messages, tools=None):
        self.call_log.append({"model": model, "messages": messages, "tools": tools})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        yield _body(response)


async def _body(chunks):
    for chunk in chunks:
        if isinstance(chunk, Exception):
            raise chunk
        yield chunk


# ---------------------------------------------------------------------------
# Mock gateway
# ---------------------------------------------------------------------------

class MockGateway:
    """Tool gateway returning canned results and recording every call.

    ``results`` maps tool names to a string or an exception to raise.
    """

    def __init__(self, specs: list[ToolSpec] | None = None, results: dict | None = None):
        self.specs = specs if specs is not None else [
            ToolSpec(
                name="list_directory",
                description="Lists files in a directory.",
                json_schema={
                    "type": "object",
                    "properties": {"path": {"type": "string"}},
                    "required": ["path"],
                },
            ),
        ]
        self.results = results or {}
        self.calls: list[tuple[str, object]] = []
        self.list_calls = 0

    async def list_tools(self):
        self.list_calls += 1
        return list(self.specs)

    async def execute(self, name, arguments):
        self.calls.append((name, arguments))
        result = self.results.get(name, f"{name} ok")
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def mock_gateway():
    return MockGateway()


@pytest.fixture
def state():
    state = ConversationState(ConversationHistory())
    state.subscribe()
    return state


@pytest.fixture
def failing_gateway():
    return MockGateway(results={"list_directory": ExecutionError("permission denied")})
