"""Exception types raised by toolstream.

Only :class:`TransportError` and :class:`StructureError` ever stop a turn.
Malformed stream lines and malformed tool arguments are recovered where
they occur and never surface as exceptions.
"""


class ToolstreamError(Exception):
    """Base class for all toolstream errors."""


class TransportError(ToolstreamError):
    """The chat backend could not be reached or the response stream broke."""


class StructureError(ToolstreamError):
    """A message was appended that breaks the conversation ordering rules."""


class ExecutionError(ToolstreamError):
    """A tool invocation failed, either in transport or inside the tool.

    The message text is handed back to the model as the tool's output.
    """


class ConfigError(ToolstreamError):
    """Required configuration is missing or invalid."""
