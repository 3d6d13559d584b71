from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, replace

from toolstream.events import (
    ContentEvent,
    MessageEvent,
    StatusEvent,
    StreamEvent,
)
from toolstream.history import ConversationHistory
from toolstream.message import Message, MessageRole


@dataclass
class DisplayMessage:
    role: str
    content: str


class ConversationState:
    """Conversation state shared between a running turn and the UI.

    Holds the history, the visible transcript and the status line behind a
    single :class:`asyncio.Lock`.  Each mutation is a short critical section
    that also publishes a display event, so events come out of
    :meth:`events` in exactly the order the mutations happened.  Nothing
    awaits network or tool I/O while holding the lock.

    Args:
        history: History to continue; a fresh one is created if omitted.
    """

    def __init__(self, history: ConversationHistory | None = None):
        self.history = history if history is not None else ConversationHistory()
        self.transcript: list[DisplayMessage] = []
        self.status: str | None = None
        self.lock = asyncio.Lock()
        self._streaming: DisplayMessage | None = None
        self._queue: asyncio.Queue[StreamEvent] | None = None

    def subscribe(self) -> None:
        """Start queueing events for :meth:`events` and :meth:`pending_events`.

        Until someone subscribes, mutations publish nothing and return their
        event only to the caller.  Once subscribed, the queue must be drained.
        """
        if self._queue is None:
            self._queue = asyncio.Queue()

    def _publish(self, event: StreamEvent) -> StreamEvent:
        if self._queue is not None:
            self._queue.put_nowait(event)
        return event

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield published events forever, in publication order."""
        self.subscribe()
        while True:
            yield await self._queue.get()

    def pending_events(self) -> list[StreamEvent]:
        """Drain events published so far without waiting."""
        drained = []
        if self._queue is None:
            return drained
        while not self._queue.empty():
            drained.append(self._queue.get_nowait())
        return drained

    async def add_message(self, message: Message, display: str | None = None) -> StreamEvent:
        """Append ``message`` to history and show it in the transcript.

        ``display`` overrides the transcript text (tool output is shown
        differently from what the model receives).
        """
        async with self.lock:
            self.history.append(message)
            content = display if display is not None else message.content or ""
            self._streaming = None
            self.transcript.append(DisplayMessage(message.role.value, content))
            return self._publish(MessageEvent(role=message.role.value, content=content))

    async def append_content(self, text: str) -> StreamEvent:
        async with self.lock:
            if self._streaming is None:
                self._streaming = DisplayMessage(MessageRole.ASSISTANT.value, "")
                self.transcript.append(self._streaming)
            self._streaming.content += text
            return self._publish(ContentEvent(text=text))

    async def commit_assistant(self, message: Message) -> StreamEvent:
        """Append the finished assistant message, closing any streamed text."""
        async with self.lock:
            self.history.append(message)
            content = message.content or ""
            if self._streaming is None and content:
                self.transcript.append(DisplayMessage(message.role.value, content))
            self._streaming = None
            return self._publish(MessageEvent(
                role=message.role.value,
                content=content,
                tool_calls=[tc.name for tc in message.tool_calls or []],
            ))

    async def set_status(self, status: str | None) -> StreamEvent:
        async with self.lock:
            self.status = status
            return self._publish(StatusEvent(status=status))

    async def history_snapshot(self) -> list[Message]:
        async with self.lock:
            return self.history.snapshot()

    async def snapshot(self) -> tuple[list[DisplayMessage], str | None]:
        """Copies of the transcript and status for rendering."""
        async with self.lock:
            return [replace(m) for m in self.transcript], self.status
