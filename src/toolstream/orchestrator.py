import asyncio
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum

from toolstream.errors import ExecutionError, TransportError
from toolstream.events import StreamEvent, TurnCompleteEvent
from toolstream.instrumentation import record_error, span
from toolstream.message import Message, ToolCall
from toolstream.provider import ModelProvider
from toolstream.sse import parse_stream
from toolstream.state import ConversationState
from toolstream.streaming import (
    ContentFragment,
    StreamEnd,
    ToolCallAssembler,
    ToolCallFragment,
)
from toolstream.tools import ToolGateway

logger = logging.getLogger(__name__)

THINKING = "Thinking..."
GATEWAY_UNAVAILABLE = "Tool gateway not available"
TOOL_CANCELLED = "Tool execution cancelled."
MAX_ROUNDS_REACHED = "Maximum tool rounds reached."


class TurnPhase(Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    FAILED = "failed"


@dataclass
class TurnResult:
    """The outcome of one user turn."""

    phase: TurnPhase
    rounds: int
    last_message: Message | None
    error: str | None = None


@dataclass
class _Response:
    """Text and tool calls collected from one streamed completion."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


class TurnOrchestrator:
    """Drives a user turn through as many completion rounds as it takes.

    Each round streams a completion, surfacing text as it arrives, and
    assembles any tool calls.  Calls are executed one at a time, in order,
    and their results appended before the next round.  The turn ends
    ``DONE`` when a response carries no tool calls and ``FAILED`` on a
    transport error or when ``max_rounds`` is exhausted.

    ``begin_turn()`` drains ``iter_turn()``.  ``iter_turn()`` is the
    streaming entry point.

    Args:
        provider: Backend that streams completions.
        gateway: Executes tools; ``None`` runs without tools.
        state: Shared conversation state the turn reads and publishes to.
        model: Model name sent with each request.
        max_rounds: Maximum completion requests per turn.
    """

    def __init__(
        self,
        provider: ModelProvider,
        gateway: ToolGateway | None,
        state: ConversationState,
        model: str,
        max_rounds: int = 25,
    ):
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.provider = provider
        self.gateway = gateway
        self.state = state
        self.model = model
        self.max_rounds = max_rounds
        self.phase = TurnPhase.IDLE
        self._tool_schemas: list[dict] | None = None

    async def begin_turn(self, user_text: str) -> TurnResult:
        """Run a turn to completion and return its result."""
        result: TurnResult | None = None
        async for event in self.iter_turn(user_text):
            if isinstance(event, TurnCompleteEvent):
                result = event.result
        if result is None:
            raise RuntimeError("iter_turn() ended without emitting TurnCompleteEvent")
        return result

    def start_turn(self, user_text: str) -> asyncio.Task:
        """Run a turn as a background task; cancel the task to abandon it."""
        return asyncio.create_task(self.begin_turn(user_text), name="toolstream-turn")

    async def iter_turn(self, user_text: str) -> AsyncIterator[StreamEvent]:
        """Run a turn, yielding display events as they are published.

        Cancelling mid-turn keeps every message already appended.
        """
        try:
            async for event in self._run_turn(user_text):
                yield event
        except asyncio.CancelledError:
            logger.info("Turn cancelled")
            self.phase = TurnPhase.FAILED
            await self.state.set_status(None)
            raise

    async def _run_turn(self, user_text: str) -> AsyncIterator[StreamEvent]:
        async with span("turn", self.model, model=self.model) as current:
            yield await self.state.add_message(Message.user(user_text))
            tools = await self._tools()

            for round_number in range(1, self.max_rounds + 1):
                self.phase = TurnPhase.AWAITING_RESPONSE
                yield await self.state.set_status(THINKING)

                response = _Response()
                try:
                    async for event in self._stream_response(round_number, tools, response):
                        yield event
                except TransportError as e:
                    logger.error(f"Turn failed in round {round_number}: {e}")
                    record_error(current, e)
                    async for event in self._fail(round_number, f"Error: {e}", str(e)):
                        yield event
                    return

                assistant = Message.assistant(response.text, response.tool_calls)
                yield await self.state.commit_assistant(assistant)

                if not response.tool_calls:
                    self.phase = TurnPhase.DONE
                    yield await self.state.set_status(None)
                    yield TurnCompleteEvent(result=TurnResult(
                        phase=self.phase, rounds=round_number, last_message=assistant,
                    ))
                    return

                self.phase = TurnPhase.EXECUTING_TOOLS
                async for event in self._execute_tools(response.tool_calls):
                    yield event

            logger.warning(f"Stopping turn after {self.max_rounds} tool rounds")
            async for event in self._fail(self.max_rounds, MAX_ROUNDS_REACHED, MAX_ROUNDS_REACHED):
                yield event

    async def _fail(
        self, rounds: int, diagnostic: str, error: str,
    ) -> AsyncIterator[StreamEvent]:
        self.phase = TurnPhase.FAILED
        message = Message.system(diagnostic)
        yield await self.state.add_message(message)
        yield await self.state.set_status(None)
        yield TurnCompleteEvent(result=TurnResult(
            phase=self.phase, rounds=rounds, last_message=message, error=error,
        ))

    async def _tools(self) -> list[dict] | None:
        if self.gateway is None:
            return None
        if self._tool_schemas is None:
            try:
                specs = await self.gateway.list_tools()
            except ExecutionError as e:
                logger.warning(f"Failed to fetch tools: {e}")
                return None
            self._tool_schemas = [s.to_wire() for s in specs]
            logger.info(f"Declaring {len(self._tool_schemas)} tools")
        return self._tool_schemas or None

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _stream_response(
        self, round_number: int, tools: list[dict] | None, response: _Response,
    ) -> AsyncIterator[StreamEvent]:
        messages = [m.to_wire() for m in await self.state.history_snapshot()]
        assembler = ToolCallAssembler()
        async with span("chat", self.model, model=self.model, round=round_number) as current:
            try:
                async with self.provider.stream_completion(
                    self.model, messages, tools,
                ) as body:
                    async for fragment in parse_stream(body):
                        if isinstance(fragment, ContentFragment):
                            response.text += fragment.text
                            yield await self.state.append_content(fragment.text)
                        elif isinstance(fragment, ToolCallFragment):
                            assembler.feed(fragment)
                        elif isinstance(fragment, StreamEnd):
                            logger.debug(f"Round {round_number} stream ended")
                        else:
                            logger.warning(f"Ignoring unknown fragment {fragment!r}")
            except TransportError as e:
                record_error(current, e)
                raise
        response.tool_calls = assembler.finalize()

    # ------------------------------------------------------------------
    # Tool execution
    # ------------------------------------------------------------------

    async def _execute_tools(self, calls: list[ToolCall]) -> AsyncIterator[StreamEvent]:
        remaining = list(calls)
        try:
            while remaining:
                call = remaining[0]
                yield await self.state.set_status(f"Executing {call.name}...")
                output = await self._execute_one(call)
                event = await self.state.add_message(
                    Message.tool_result(call, output), display=f"output: {output}",
                )
                # Only a call whose result reached history leaves ``remaining``.
                remaining.pop(0)
                yield event
        except asyncio.CancelledError:
            # Answer the rest so the history stays well-formed for later turns.
            for call in remaining:
                await self.state.add_message(
                    Message.tool_result(call, TOOL_CANCELLED),
                    display=f"output: {TOOL_CANCELLED}",
                )
            raise

    async def _execute_one(self, call: ToolCall) -> str:
        try:
            arguments = json.loads(call.arguments)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in arguments for {call.name}: {e}")
            arguments = None

        if self.gateway is None:
            return GATEWAY_UNAVAILABLE

        logger.info(f"Calling {call.name} ({call.id})")
        async with span("execute_tool", call.name, tool=call.name, call_id=call.id) as current:
            try:
                return await self.gateway.execute(call.name, arguments)
            except ExecutionError as e:
                logger.warning(f"Tool {call.name} failed: {e}")
                record_error(current, e)
                return str(e)
