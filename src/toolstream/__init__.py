from toolstream.errors import (
    ConfigError,
    ExecutionError,
    StructureError,
    ToolstreamError,
    TransportError,
)
from toolstream.history import ConversationHistory
from toolstream.instrumentation import instrument, uninstrument
from toolstream.message import FunctionCall, Message, MessageRole, ToolCall
from toolstream.orchestrator import TurnOrchestrator, TurnPhase, TurnResult
from toolstream.provider import (
    ModelProvider,
    OpenAICompatibleProvider,
    OpenAIProvider,
    OpenWebUIProvider,
)
from toolstream.sse import StreamingDeltaParser, parse_stream
from toolstream.state import ConversationState
from toolstream.streaming import (
    ContentFragment,
    StreamEnd,
    ToolCallAssembler,
    ToolCallFragment,
)
from toolstream.tools import LocalToolGateway, Tool, ToolGateway, ToolSpec, tool

__all__ = [
    "ConfigError",
    "ContentFragment",
    "ConversationHistory",
    "ConversationState",
    "ExecutionError",
    "FunctionCall",
    "LocalToolGateway",
    "Message",
    "MessageRole",
    "ModelProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "OpenWebUIProvider",
    "StreamEnd",
    "StreamingDeltaParser",
    "StructureError",
    "Tool",
    "ToolCall",
    "ToolCallAssembler",
    "ToolCallFragment",
    "ToolGateway",
    "ToolSpec",
    "ToolstreamError",
    "TransportError",
    "TurnOrchestrator",
    "TurnPhase",
    "TurnResult",
    "instrument",
    "parse_stream",
    "tool",
    "uninstrument",
]
