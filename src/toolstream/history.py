from __future__ import annotations

from collections.abc import Iterator

from toolstream.errors import StructureError
from toolstream.message import Message, MessageRole


class ConversationHistory:
    """Append-only, order-checked record of a conversation.

    After an assistant message that requested tools, the only messages
    accepted are tool results answering those calls, one per call and in
    the same order.  Anything else raises :class:`StructureError`.

    Args:
        system_prompt: Optional text stored as the first (system) message.
    """

    def __init__(self, system_prompt: str | None = None):
        self._messages: list[Message] = []
        self._outstanding: list[str] = []
        self._in_tool_round = False
        if system_prompt:
            self.append(Message.system(system_prompt))

    def append(self, message: Message) -> None:
        if message.role is MessageRole.TOOL:
            self._check_tool_result(message)
            self._outstanding.pop(0)
        else:
            if self._outstanding:
                raise StructureError(
                    f"{message.role.value} message appended while tool calls "
                    f"{self._outstanding} are unanswered"
                )
            if message.role is MessageRole.ASSISTANT:
                self._in_tool_round = bool(message.tool_calls)
                self._outstanding = [tc.id for tc in message.tool_calls or []]
            elif message.role is MessageRole.USER:
                self._in_tool_round = False
        self._messages.append(message)

    def _check_tool_result(self, message: Message) -> None:
        if not self._in_tool_round:
            raise StructureError(
                "tool message has no preceding assistant message with tool calls"
            )
        if not self._outstanding:
            raise StructureError(
                f"tool result {message.tool_call_id!r} but every call "
                "of the preceding assistant message is already answered"
            )
        if message.tool_call_id != self._outstanding[0]:
            raise StructureError(
                f"tool result {message.tool_call_id!r} does not match the "
                f"next outstanding call {self._outstanding[0]!r}"
            )

    @property
    def outstanding_calls(self) -> list[str]:
        """Ids of the latest tool calls still waiting for a result, in order."""
        return list(self._outstanding)

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def snapshot(self) -> list[Message]:
        """A copy of the messages, safe to hand to an in-flight request."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.snapshot())
