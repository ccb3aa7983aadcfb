"""Tools bundled with the runtime."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from .tools import ToolDefinition, ToolRegistry

TIME_FORMAT = "%Y-%m-%d %H:%M:%S %z"
PAINTING_URL = "/api/images/painting.png"


def _format_offset(moment: datetime) -> str:
    # %z renders +0000; show it as +00:00
    text = moment.strftime(TIME_FORMAT)
    return text[:-2] + ":" + text[-2:]


def get_current_time(arguments: dict[str, Any]) -> str:
    """Current date and time in UTC and in the server's local time zone."""
    utc_now = datetime.now(UTC)
    local_now = utc_now.astimezone()
    return f"UTC: {_format_offset(utc_now)}\nLocal ({local_now.tzname()}): {_format_offset(local_now)}"


def get_painting(arguments: dict[str, Any]) -> str:
    return (
        "Here is the painting. Display it to the user by including this exact markdown"
        f" in your response:\n\n![Painting]({PAINTING_URL})"
    )


BUILTIN_TOOLS = [
    ToolDefinition(
        name="get_current_time",
        description="Gets the current date and time in UTC and the server's local time zone.",
        handler=get_current_time,
    ),
    ToolDefinition(
        name="get_painting",
        description=(
            "Returns a painting image. Use this when the user asks for a painting"
            " or wants to see the painting."
        ),
        handler=get_painting,
    ),
]


def register_builtin_tools(registry: ToolRegistry) -> list[str]:
    """Register the bundled tools, replacing same-named ones.

    Returns:
        Names of the registered tools
    """
    for definition in BUILTIN_TOOLS:
        registry.register_or_replace(definition)
    return [d.name for d in BUILTIN_TOOLS]
