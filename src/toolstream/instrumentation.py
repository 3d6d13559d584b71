"""Optional OpenTelemetry spans for turns, completions and tool calls.

Disabled until :func:`instrument` is called; every helper is a no-op before
that, so ``opentelemetry-api`` is only needed when tracing is wanted.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None

# Keyword -> span attribute key
_ATTRIBUTES = {
    "model": "gen_ai.request.model",
    "round": "toolstream.round",
    "tool": "gen_ai.tool.name",
    "call_id": "gen_ai.tool.call.id",
}


def instrument(*, tracer_name: str = "toolstream") -> None:
    """Send spans to the globally configured TracerProvider.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for tracing. "
            "Install it with: pip install toolstream[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    logger.info(f"Tracing enabled with tracer {tracer_name}")


def uninstrument() -> None:
    global _tracer
    _tracer = None


@asynccontextmanager
async def span(operation: str, target: str, **attributes):
    """Open a span named ``"<operation> <target>"``, or yield ``None`` when disabled.

    ``attributes`` use the short keywords ``model``, ``round``, ``tool`` and
    ``call_id``.  ``chat`` spans are client spans.
    """
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    values = {"gen_ai.operation.name": operation}
    values.update({_ATTRIBUTES[k]: v for k, v in attributes.items()})
    kind = SpanKind.CLIENT if operation == "chat" else SpanKind.INTERNAL
    with _tracer.start_as_current_span(
        f"{operation} {target}", kind=kind, attributes=values,
    ) as current:
        yield current


def record_error(current, exception: BaseException) -> None:
    if current is None:
        return
    from opentelemetry.trace import StatusCode

    current.set_status(StatusCode.ERROR, str(exception))
    current.record_exception(exception)
    current.set_attribute("error.type", type(exception).__qualname__)
