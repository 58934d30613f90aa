"""Operation catalog.

Each tool declares its argument shape as a pydantic model. The engine
validates incoming arguments against that model before the handler runs, so
handlers only ever receive a validated model instance.

Architecture:
- ToolDefinition: name, description, input model, handler
- ToolRegistry: the fixed set of tools a server exposes
- ToolContext: session information passed to handlers
- ToolResult: human-readable summary plus structured data

Usage:
    class GreetInput(ToolInput):
        name: str

    async def greet(args: GreetInput, context: ToolContext) -> ToolResult:
        return ToolResult(text=f"Hello {args.name}", data={"name": args.name})

    registry.register(ToolDefinition(
        name="greet",
        description="Say hello",
        input_model=GreetInput,
        handler=greet,
    ))
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .content import WIDGET_URI
from .errors import InvalidArgumentsError, OperationNotFoundError
from .protocol.types import CallToolResult, TextContent, ToolDescriptor

logger = logging.getLogger(__name__)


class ToolInput(BaseModel):
    """Base for tool argument models. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


@dataclass
class ToolContext:
    """Context passed to tool handlers."""

    session_id: str


@dataclass
class ToolResult:
    """Successful tool output.

    Attributes:
        text: Human-readable summary
        data: Machine-readable payload (structuredContent)
        meta: Optional client hints (_meta)
    """

    text: str
    data: dict[str, Any] = field(default_factory=dict)
    meta: dict[str, Any] | None = None

    def to_call_result(self) -> CallToolResult:
        return CallToolResult(
            content=[TextContent(text=self.text)],
            structuredContent=self.data,
            isError=False,
            meta=self.meta,
        )


ToolHandler = Callable[[Any, ToolContext], Awaitable[ToolResult]]


@dataclass
class ToolDefinition:
    """Definition of an invocable operation.

    Attributes:
        name: Unique identifier, matched exactly
        description: Human-readable description for the model/client
        input_model: pydantic model describing the arguments
        handler: Async function implementing the tool
        title: Optional display title
        meta: Optional _meta advertised in tools/list
        timeout: Optional timeout in seconds for execution
    """

    name: str
    description: str
    input_model: type[ToolInput]
    handler: ToolHandler
    title: str | None = None
    meta: dict[str, Any] | None = None
    timeout: float | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool name cannot be empty")
        if not self.description:
            raise ValueError("Tool description cannot be empty")
        if not callable(self.handler):
            raise ValueError("Tool handler must be callable")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("Tool timeout must be positive")

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the arguments."""
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        return schema

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            title=self.title,
            description=self.description,
            inputSchema=self.input_schema,
            meta=self.meta,
        )

    def validate(self, arguments: Any) -> ToolInput:
        """Validate raw arguments against the input model.

        Raises:
            InvalidArgumentsError: If arguments do not match the declared shape
        """
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidArgumentsError(
                f"Arguments for '{self.name}' must be an object",
                [{"loc": [], "msg": "Input should be an object", "type": "dict_type"}],
            )
        try:
            return self.input_model.model_validate(arguments)
        except ValidationError as e:
            errors = [
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in e.errors()
            ]
            summary = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in errors
            )
            raise InvalidArgumentsError(
                f"Invalid arguments for '{self.name}': {summary}", errors
            ) from e


class ToolRegistry:
    """The set of tools a server exposes.

    Populated once at startup and read concurrently by every session's
    engine; it is not mutated while sessions are live.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def resolve(self, name: Any) -> ToolDefinition:
        """Exact-match lookup.

        Raises:
            OperationNotFoundError: If no tool has this name
        """
        tool = self._tools.get(name) if isinstance(name, str) else None
        if tool is None:
            raise OperationNotFoundError(str(name))
        return tool

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    @property
    def count(self) -> int:
        return len(self._tools)


# =============================================================================
# Built-in tools
# =============================================================================


class EchoInput(ToolInput):
    message: str = Field(description="Message to echo")


class RenderInput(ToolInput):
    message: str = Field(description="The text to display")


async def echo_handler(args: EchoInput, context: ToolContext) -> ToolResult:
    return ToolResult(text=f"Echo: {args.message}", data={"message": args.message})


async def render_handler(args: RenderInput, context: ToolContext) -> ToolResult:
    return ToolResult(
        text=f'Widget displayed with message: "{args.message}"',
        data={"message": args.message, "widget": WIDGET_URI},
        meta={"openai/outputTemplate": WIDGET_URI},
    )


ECHO_TOOL = ToolDefinition(
    name="echo",
    title="Echo",
    description="Echo back the input message",
    input_model=EchoInput,
    handler=echo_handler,
)

RENDER_TOOL = ToolDefinition(
    name="render",
    title="Render Widget",
    description=(
        "Displays a message in a widget to the user. "
        "Use this whenever the user asks to see something."
    ),
    input_model=RenderInput,
    handler=render_handler,
    meta={
        "openai/outputTemplate": WIDGET_URI,
        "openai/toolInvocation/invoking": "Rendering widget",
        "openai/toolInvocation/invoked": "Widget rendered",
    },
)


def create_default_registry() -> ToolRegistry:
    """Registry holding the built-in echo and render tools."""
    registry = ToolRegistry()
    registry.register(ECHO_TOOL)
    registry.register(RENDER_TOOL)
    return registry
