from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, field_serializer, model_validator


class MessageRole(Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    TOOL = "tool"


class FunctionCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    # JSON-encoded object as produced by the model; may be malformed.
    arguments: str


class ToolCall(BaseModel):
    """A single tool invocation requested by the assistant."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str = "function"
    function: FunctionCall

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments


class Message(BaseModel):
    """One element of the conversation.

    ``tool_calls`` is only set on assistant messages, ``tool_call_id`` and
    ``name`` only on tool messages. ``content`` may be ``None`` only for an
    assistant message that requested tools without saying anything.
    """

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    @field_serializer("role")
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    @model_validator(mode="after")
    def _check_role_fields(self) -> Message:
        if self.tool_calls is not None and self.role is not MessageRole.ASSISTANT:
            raise ValueError("only assistant messages may carry tool_calls")
        if self.role is MessageRole.TOOL:
            if self.tool_call_id is None:
                raise ValueError("tool messages require a tool_call_id")
        elif self.tool_call_id is not None or self.name is not None:
            raise ValueError("tool_call_id and name are only valid on tool messages")
        if self.content is None and not (
            self.role is MessageRole.ASSISTANT and self.tool_calls
        ):
            raise ValueError(f"{self.role.value} messages require content")
        return self

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def assistant(
        cls, content: str, tool_calls: list[ToolCall] | None = None,
    ) -> Message:
        """Build an assistant message from the text and calls of one response.

        With tool calls, empty text is stored as ``None``.
        """
        if tool_calls:
            return cls(
                role=MessageRole.ASSISTANT,
                content=content or None,
                tool_calls=list(tool_calls),
            )
        return cls(role=MessageRole.ASSISTANT, content=content)

    @classmethod
    def tool_result(cls, call: ToolCall, content: str) -> Message:
        return cls(
            role=MessageRole.TOOL,
            content=content,
            tool_call_id=call.id,
            name=call.name,
        )

    def to_wire(self) -> dict:
        """Request-body form of this message, absent fields omitted."""
        return self.model_dump(exclude_none=True)
