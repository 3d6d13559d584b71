"""Display events published while a turn runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class StreamEvent:
    """Base for all display events."""


@dataclass
class ContentEvent(StreamEvent):
    """Token-level assistant text, appended to the message being streamed."""

    text: str = ""


@dataclass
class MessageEvent(StreamEvent):
    """A finished message for the transcript.

    For ``role == "assistant"`` this closes the message built up by the
    preceding :class:`ContentEvent` values; ``content`` is its full text.
    ``tool_calls`` lists the names of any tools the assistant requested.
    """

    role: str = ""
    content: str = ""
    tool_calls: list[str] = field(default_factory=list)


@dataclass
class StatusEvent(StreamEvent):
    """Status line text, or ``None`` when idle."""

    status: str | None = None


@dataclass
class TurnCompleteEvent(StreamEvent):
    """Final event of a turn, always the last event yielded."""

    result: Any = None
