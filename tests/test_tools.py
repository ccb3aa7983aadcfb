"""Tests for the tool registry and bundled tools.

Test categories:
- ToolDefinition validation and schema output
- ToolRegistry registration and invocation
- The @tool decorator
- Builtin tools
"""

from __future__ import annotations

import asyncio
import re
import threading
import time
from typing import Any

import pytest

from chat_runtime.builtin_tools import (
    BUILTIN_TOOLS,
    PAINTING_URL,
    get_current_time,
    get_painting,
    register_builtin_tools,
)
from chat_runtime.tools import ToolDefinition, ToolRegistry, UnknownToolError, tool

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sample_handler() -> Any:
    """Create a sample async handler for testing."""

    async def handler(arguments: dict[str, Any]) -> str:
        return f"Processed: {arguments.get('query', 'no query')}"

    return handler


@pytest.fixture
def sample_tool_definition(sample_handler: Any) -> ToolDefinition:
    """Create a sample tool definition for testing."""
    return ToolDefinition(
        name="test_tool",
        description="A test tool for unit testing",
        parameters={
            "type": "object",
            "properties": {"query": {"type": "string"}},
            "required": ["query"],
        },
        handler=sample_handler,
    )


@pytest.fixture
def fresh_registry() -> ToolRegistry:
    """Create a fresh registry for each test."""
    return ToolRegistry()


# =============================================================================
# ToolDefinition Tests
# =============================================================================


class TestToolDefinition:
    """Tests for ToolDefinition."""

    def test_default_parameters(self, sample_handler: Any) -> None:
        """Parameters default to an empty object schema."""
        definition = ToolDefinition(name="t", description="d", handler=sample_handler)
        assert definition.parameters == {"type": "object", "properties": {}}

    def test_to_schema(self, sample_tool_definition: ToolDefinition) -> None:
        """to_schema exposes name, description and parameters."""
        schema = sample_tool_definition.to_schema()
        assert schema["name"] == "test_tool"
        assert schema["description"] == "A test tool for unit testing"
        assert schema["parameters"]["required"] == ["query"]

    def test_empty_name_rejected(self, sample_handler: Any) -> None:
        with pytest.raises(ValueError, match="name cannot be empty"):
            ToolDefinition(name="", description="d", handler=sample_handler)

    def test_empty_description_rejected(self, sample_handler: Any) -> None:
        with pytest.raises(ValueError, match="description cannot be empty"):
            ToolDefinition(name="t", description="", handler=sample_handler)

    def test_non_callable_handler_rejected(self) -> None:
        with pytest.raises(ValueError, match="must be callable"):
            ToolDefinition(name="t", description="d", handler="nope")  # type: ignore[arg-type]


# =============================================================================
# ToolRegistry Tests
# =============================================================================


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_register_and_get(
        self, fresh_registry: ToolRegistry, sample_tool_definition: ToolDefinition
    ) -> None:
        """Registered tools can be looked up by name."""
        fresh_registry.register(sample_tool_definition)
        assert fresh_registry.get("test_tool") is sample_tool_definition
        assert fresh_registry.count == 1

    def test_register_duplicate_raises(
        self, fresh_registry: ToolRegistry, sample_tool_definition: ToolDefinition
    ) -> None:
        """Registering the same name twice is an error."""
        fresh_registry.register(sample_tool_definition)
        with pytest.raises(ValueError, match="already registered"):
            fresh_registry.register(sample_tool_definition)

    def test_register_or_replace(
        self, fresh_registry: ToolRegistry, sample_tool_definition: ToolDefinition
    ) -> None:
        """register_or_replace reports whether it replaced a tool."""
        assert fresh_registry.register_or_replace(sample_tool_definition) is False
        assert fresh_registry.register_or_replace(sample_tool_definition) is True
        assert fresh_registry.count == 1

    def test_unregister(
        self, fresh_registry: ToolRegistry, sample_tool_definition: ToolDefinition
    ) -> None:
        """unregister removes a tool and reports success."""
        fresh_registry.register(sample_tool_definition)
        assert fresh_registry.unregister("test_tool") is True
        assert fresh_registry.unregister("test_tool") is False
        assert fresh_registry.get("test_tool") is None

    def test_definitions(
        self, fresh_registry: ToolRegistry, sample_tool_definition: ToolDefinition
    ) -> None:
        """definitions returns one schema per tool."""
        fresh_registry.register(sample_tool_definition)
        assert [d["name"] for d in fresh_registry.definitions()] == ["test_tool"]

    @pytest.mark.asyncio
    async def test_invoke_async_handler(
        self, fresh_registry: ToolRegistry, sample_tool_definition: ToolDefinition
    ) -> None:
        """Coroutine handlers are awaited."""
        fresh_registry.register(sample_tool_definition)
        result = await fresh_registry.invoke("test_tool", {"query": "cats"})
        assert result == "Processed: cats"

    @pytest.mark.asyncio
    async def test_invoke_sync_handler(self, fresh_registry: ToolRegistry) -> None:
        """Plain handlers return their value."""
        fresh_registry.register(
            ToolDefinition(name="add", description="Add", handler=lambda a: a["x"] + a["y"])
        )
        assert await fresh_registry.invoke("add", {"x": 2, "y": 3}) == 5

    @pytest.mark.asyncio
    async def test_sync_handler_runs_off_event_loop(self, fresh_registry: ToolRegistry) -> None:
        """A blocking handler runs in a worker thread, leaving the loop free."""
        seen: list[int] = []

        def blocking(arguments: dict[str, Any]) -> str:
            seen.append(threading.get_ident())
            time.sleep(0.2)
            return "slept"

        fresh_registry.register(ToolDefinition(name="nap", description="Nap", handler=blocking))
        ticks = 0

        async def ticker() -> None:
            nonlocal ticks
            while True:
                await asyncio.sleep(0.01)
                ticks += 1

        ticking = asyncio.create_task(ticker())
        try:
            assert await fresh_registry.invoke("nap", {}) == "slept"
        finally:
            ticking.cancel()

        assert seen and seen[0] != threading.get_ident()
        assert ticks > 5

    @pytest.mark.asyncio
    async def test_sync_handler_timeout(self, fresh_registry: ToolRegistry) -> None:
        """Timeouts also apply to plain handlers."""
        fresh_registry.register(
            ToolDefinition(
                name="stall",
                description="Stall",
                handler=lambda a: time.sleep(0.5),
                timeout=0.05,
            )
        )
        with pytest.raises(asyncio.TimeoutError):
            await fresh_registry.invoke("stall", {})

    @pytest.mark.asyncio
    async def test_invoke_unknown_tool(self, fresh_registry: ToolRegistry) -> None:
        """Invoking a missing tool raises UnknownToolError."""
        with pytest.raises(UnknownToolError):
            await fresh_registry.invoke("missing", {})

    @pytest.mark.asyncio
    async def test_invoke_propagates_handler_errors(self, fresh_registry: ToolRegistry) -> None:
        """Handler exceptions reach the caller."""

        def boom(arguments: dict[str, Any]) -> str:
            raise RuntimeError("kaboom")

        fresh_registry.register(ToolDefinition(name="boom", description="Fails", handler=boom))
        with pytest.raises(RuntimeError, match="kaboom"):
            await fresh_registry.invoke("boom", {})

    @pytest.mark.asyncio
    async def test_invoke_timeout(self, fresh_registry: ToolRegistry) -> None:
        """A slow async handler is cut off at its timeout."""

        async def slow(arguments: dict[str, Any]) -> str:
            await asyncio.sleep(5)
            return "late"

        fresh_registry.register(
            ToolDefinition(name="slow", description="Slow", handler=slow, timeout=0.01)
        )
        with pytest.raises(TimeoutError):
            await fresh_registry.invoke("slow", {})


# =============================================================================
# Decorator Tests
# =============================================================================


class TestToolDecorator:
    """Tests for the @tool decorator."""

    @pytest.mark.asyncio
    async def test_decorator_registers_function(self, fresh_registry: ToolRegistry) -> None:
        """Decorated functions are registered and left unchanged."""

        @tool("echo", "Echo the input", registry=fresh_registry)
        async def echo(arguments: dict[str, Any]) -> str:
            return arguments.get("text", "")

        assert fresh_registry.get("echo") is not None
        assert await echo({"text": "direct"}) == "direct"
        assert await fresh_registry.invoke("echo", {"text": "hi"}) == "hi"

    def test_decorator_with_parameters(self, fresh_registry: ToolRegistry) -> None:
        """Explicit parameters override the default schema."""
        params = {"type": "object", "properties": {"text": {"type": "string"}}}

        @tool("echo", "Echo", params, registry=fresh_registry, timeout=2.0)
        def echo(arguments: dict[str, Any]) -> str:
            return arguments["text"]

        definition = fresh_registry.get("echo")
        assert definition is not None
        assert definition.parameters == params
        assert definition.timeout == 2.0


# =============================================================================
# Builtin Tools
# =============================================================================


class TestBuiltinTools:
    """Tests for tools bundled with the runtime."""

    def test_get_current_time_format(self) -> None:
        """Output lists UTC and local time with colon offsets."""
        output = get_current_time({})
        lines = output.split("\n")
        assert len(lines) == 2
        assert re.fullmatch(r"UTC: \d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \+00:00", lines[0])
        assert re.fullmatch(
            r"Local \(.*\): \d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} [+-]\d{2}:\d{2}", lines[1]
        )

    def test_register_builtin_tools(self, fresh_registry: ToolRegistry) -> None:
        """All bundled tools are registered and named."""
        names = register_builtin_tools(fresh_registry)
        assert names == [d.name for d in BUILTIN_TOOLS]
        assert "get_current_time" in names
        assert "get_painting" in names
        assert fresh_registry.count == len(BUILTIN_TOOLS)

    def test_register_builtin_tools_is_idempotent(self, fresh_registry: ToolRegistry) -> None:
        """Registering twice replaces rather than failing."""
        register_builtin_tools(fresh_registry)
        register_builtin_tools(fresh_registry)
        assert fresh_registry.count == len(BUILTIN_TOOLS)

    def test_get_painting_returns_markdown_image(self) -> None:
        """The painting tool hands the model a markdown link to the image route."""
        output = get_painting({})
        assert output.endswith(f"![Painting]({PAINTING_URL})")
        assert PAINTING_URL == "/api/images/painting.png"

    @pytest.mark.asyncio
    async def test_builtin_tools_invoke_through_registry(self, fresh_registry: ToolRegistry) -> None:
        register_builtin_tools(fresh_registry)
        assert "![Painting]" in await fresh_registry.invoke("get_painting", {})
