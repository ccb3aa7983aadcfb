"""Tool registry.

Tools are named, schema-described callables the model may ask to run.
The registry only describes and invokes them; whether a call may run at
all is decided by the approval flow in the orchestrator.

Usage:
    from chat_runtime.tools import ToolDefinition, ToolRegistry

    async def lookup(arguments: dict) -> str:
        return f"Found {arguments['query']}"

    registry = ToolRegistry()
    registry.register(ToolDefinition(
        name="lookup",
        description="Look something up",
        parameters={
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
        },
        handler=lookup,
    ))
    result = await registry.invoke("lookup", {"query": "cats"})
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Handlers take the argument mapping and return a result, sync or async.
ToolHandler = Callable[[dict[str, Any]], Any]


class UnknownToolError(LookupError):
    """Raised when invoking a tool name that is not registered."""


@dataclass
class ToolDefinition:
    """Definition of an invocable tool.

    Attributes:
        name: Unique identifier for the tool
        description: Human-readable description for the model
        parameters: JSON Schema for the tool's input
        handler: Callable implementing the tool
        timeout: Optional timeout in seconds for one invocation
    """

    name: str
    description: str
    handler: ToolHandler
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    timeout: float | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool name cannot be empty")
        if not self.description:
            raise ValueError("Tool description cannot be empty")
        if not callable(self.handler):
            raise ValueError("Tool handler must be callable")

    def to_schema(self) -> dict[str, Any]:
        """Describe the tool for the inference client."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class ToolRegistry:
    """Registry of tools available to every session."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._lock = threading.Lock()

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        with self._lock:
            if tool.name in self._tools:
                raise ValueError(f"Tool '{tool.name}' already registered")
            self._tools[tool.name] = tool
        logger.info(f"Registered tool: {tool.name}")

    def register_or_replace(self, tool: ToolDefinition) -> bool:
        """Register a tool, replacing any existing one with the same name.

        Returns:
            True if an existing tool was replaced
        """
        with self._lock:
            replaced = tool.name in self._tools
            self._tools[tool.name] = tool
        logger.info(f"{'Replaced' if replaced else 'Registered'} tool: {tool.name}")
        return replaced

    def unregister(self, name: str) -> bool:
        with self._lock:
            removed = self._tools.pop(name, None)
        if removed is not None:
            logger.info(f"Unregistered tool: {name}")
        return removed is not None

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def definitions(self) -> list[dict[str, Any]]:
        """Schemas of all tools, for the inference client."""
        return [t.to_schema() for t in self.list_tools()]

    @property
    def count(self) -> int:
        return len(self._tools)

    async def invoke(self, name: str, arguments: dict[str, Any]) -> Any:
        """Invoke a tool by name.

        Raises:
            UnknownToolError: If no tool has that name
            TimeoutError: If the tool exceeds its timeout
            Exception: Whatever the handler raises
        """
        tool = self.get(name)
        if tool is None:
            raise UnknownToolError(f"Unknown tool: {name}")

        logger.debug(f"Invoking tool {name}")
        if inspect.iscoroutinefunction(tool.handler):
            pending = tool.handler(arguments)
        else:
            pending = _call_in_thread(tool.handler, arguments)
        if tool.timeout:
            return await asyncio.wait_for(pending, timeout=tool.timeout)
        return await pending


async def _call_in_thread(handler: ToolHandler, arguments: dict[str, Any]) -> Any:
    """Run a plain handler off the event loop so it cannot stall streams."""
    result = await asyncio.to_thread(handler, arguments)
    if inspect.isawaitable(result):
        result = await result
    return result


def tool(
    name: str,
    description: str,
    parameters: dict[str, Any] | None = None,
    *,
    registry: ToolRegistry,
    timeout: float | None = None,
) -> Callable[[ToolHandler], ToolHandler]:
    """Decorator registering a function as a tool.

    Example:
        @tool("echo", "Echo the input", registry=registry)
        async def echo(arguments: dict) -> str:
            return arguments.get("text", "")
    """

    def decorator(func: ToolHandler) -> ToolHandler:
        definition = ToolDefinition(
            name=name,
            description=description,
            handler=func,
            timeout=timeout,
        )
        if parameters is not None:
            definition.parameters = parameters
        registry.register_or_replace(definition)
        return func

    return decorator
