import asyncio
import inspect
import json
import logging
import re
from typing import Any, Callable, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from toolstream.errors import ExecutionError

logger = logging.getLogger(__name__)

NO_OUTPUT = "Tool executed successfully with no output."

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    dict: "object",
    type(None): "null",
}


class ToolSpec(BaseModel):
    """A tool as advertised to the model."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    json_schema: dict = Field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_wire(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.json_schema,
            },
        }


@runtime_checkable
class ToolGateway(Protocol):
    """Anything that can enumerate tools and run one by name.

    ``execute`` returns the tool's text output and raises
    :class:`ExecutionError` when the call cannot be made or the tool fails.
    """

    async def list_tools(self) -> list[ToolSpec]: ...

    async def execute(self, name: str, arguments: Any) -> str: ...


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Pull ``name: description`` pairs from a Google-style ``Args:`` block."""
    doc = inspect.getdoc(func)
    if not doc:
        return {}
    descriptions: dict[str, str] = {}
    in_args = False
    current = None
    for line in doc.splitlines():
        stripped = line.strip()
        if stripped in ("Args:", "Arguments:", "Parameters:"):
            in_args = True
            continue
        if not in_args:
            continue
        if not stripped:
            current = None
            continue
        if not line.startswith((" ", "\t")):
            break
        match = re.match(r"^(\w+)(?:\s*\([^)]*\))?:\s*(.*)$", stripped)
        if match:
            current = match.group(1)
            descriptions[current] = match.group(2)
        elif current is not None:
            descriptions[current] = f"{descriptions[current]} {stripped}".strip()
    return descriptions


def _json_type(annotation: Any) -> str:
    # Postponed annotations arrive as strings.
    if isinstance(annotation, str):
        return {t.__name__: js for t, js in _JSON_TYPES.items()}.get(annotation, "string")
    return _JSON_TYPES.get(annotation, "string")


def _build_parameters_schema(func: Callable) -> tuple[dict, list[str]]:
    signature = inspect.signature(func)
    descriptions = _parse_param_descriptions(func)
    properties = {}
    required = []
    for param_name, param in signature.parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        properties[param_name] = {
            "type": _json_type(param.annotation),
            "description": descriptions.get(param_name, ""),
        }
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
    schema = {"type": "object", "properties": properties, "required": required}
    return schema, required


def _summary(func: Callable) -> str:
    doc = inspect.getdoc(func)
    if not doc:
        return ""
    return doc.split("\n\n", 1)[0].strip()


class Tool(BaseModel):
    func: Callable = Field(exclude=True)
    name: str
    description: str = ""
    parameters_schema: dict
    model_config = {"arbitrary_types_allowed": True}

    def model_dump(self, **kwargs):
        """Return the function schema sent to the model."""
        return self.spec().to_wire()

    def spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            json_schema=self.parameters_schema,
        )

    async def __call__(self, **kwargs):
        if inspect.iscoroutinefunction(self.func):
            return await self.func(**kwargs)
        # Sync tools do blocking I/O; keep the event loop free while they run.
        result = await asyncio.to_thread(self.func, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result


def tool(func: Callable | None = None, *, name: str | None = None,
         description: str | None = None):
    """Wrap a function as a :class:`Tool`.

    Usable bare (``@tool``) or with overrides
    (``@tool(name="x", description="y")``).  The parameter schema is read
    from the signature, with descriptions from the docstring's ``Args:``.
    """
    def wrap(f: Callable) -> Tool:
        schema, _ = _build_parameters_schema(f)
        return Tool(
            func=f,
            name=name or f.__name__,
            description=description if description is not None else _summary(f),
            parameters_schema=schema,
        )

    if func is not None:
        return wrap(func)
    return wrap


def _format_output(result: Any) -> str:
    if result is None or result == "":
        return NO_OUTPUT
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


class LocalToolGateway:
    """In-process :class:`ToolGateway` over a fixed set of tools."""

    def __init__(self, tools: list[Tool]):
        self.tool_registry = {t.name: t for t in tools}

    async def list_tools(self) -> list[ToolSpec]:
        return [t.spec() for t in self.tool_registry.values()]

    async def execute(self, name: str, arguments: Any) -> str:
        tool_obj = self.tool_registry.get(name)
        if tool_obj is None:
            logger.warning(f"Tool not found: {name}")
            raise ExecutionError(f"Error executing tool: tool '{name}' not found")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ExecutionError(
                "Error executing tool: Arguments must be a JSON object"
            )

        logger.info(f"Calling {name} with {arguments}")
        try:
            result = await tool_obj(**arguments)
        except ExecutionError:
            raise
        except Exception as e:
            logger.error(f"Tool {name} raised: {e}")
            raise ExecutionError(f"Error executing tool: {e}") from e
        return _format_output(result)
