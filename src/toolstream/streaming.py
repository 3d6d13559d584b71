"""Streaming primitives for chat-completion responses.

The SSE parser yields :data:`Fragment` values.  The
:class:`ToolCallAssembler` reassembles tool calls whose names and
arguments arrive in pieces across multiple payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from toolstream.message import FunctionCall, ToolCall


@dataclass(frozen=True)
class ContentFragment:
    """A piece of assistant text."""

    text: str


@dataclass(frozen=True)
class ToolCallFragment:
    """A piece of one tool call, keyed by its position in the response."""

    index: int
    id: str | None = None
    type: str | None = None
    name: str | None = None
    arguments: str | None = None


@dataclass(frozen=True)
class StreamEnd:
    """The backend signalled the end of the response."""


Fragment = Union[ContentFragment, ToolCallFragment, StreamEnd]


@dataclass
class _PendingCall:
    id: str = ""
    type: str = "function"
    name: str = ""
    arguments: str = ""


class ToolCallAssembler:
    """Assembles complete tool calls from streaming fragments.

    Ids and types arrive whole and replace what was seen before; names and
    arguments are token-streamed and appended.  One assembler serves one
    response.
    """

    def __init__(self) -> None:
        self._pending: dict[int, _PendingCall] = {}
        self._finalized = False

    @property
    def is_empty(self) -> bool:
        return not self._pending

    def feed(self, fragment: ToolCallFragment) -> None:
        if self._finalized:
            raise RuntimeError("ToolCallAssembler already finalized")
        call = self._pending.setdefault(fragment.index, _PendingCall())
        if fragment.id is not None:
            call.id = fragment.id
        if fragment.type is not None:
            call.type = fragment.type
        if fragment.name is not None:
            call.name += fragment.name
        if fragment.arguments is not None:
            call.arguments += fragment.arguments

    def finalize(self) -> list[ToolCall]:
        """Return completed tool calls in index order."""
        self._finalized = True
        return [
            ToolCall(
                id=call.id,
                type=call.type,
                function=FunctionCall(name=call.name, arguments=call.arguments),
            )
            for call in (self._pending[i] for i in sorted(self._pending))
        ]
