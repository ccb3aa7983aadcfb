"""Render stored sessions as client-facing UI messages.

The stored conversation keeps tool calls on assistant messages and their
results on separate tool-role messages. Clients expect a single tool part
per call whose state reflects how far it got, so results are merged back
into the part that announced the call, matched by call id.
"""

from __future__ import annotations

import logging
from typing import Any

from ..models import ChatSession, Role, TextContent, ToolCallContent
from ..protocols.streaming import approval_id_for

logger = logging.getLogger(__name__)

STATE_APPROVAL_REQUESTED = "approval-requested"
STATE_OUTPUT_AVAILABLE = "output-available"
STATE_OUTPUT_DENIED = "output-denied"


def message_id(session: ChatSession, index: int) -> str:
    """Stable id for the message at index in a session."""
    return f"{session.id[:8]}-{index}"


def _tool_part(call: ToolCallContent) -> dict[str, Any]:
    return {
        "type": "dynamic-tool",
        "toolCallId": call.call_id,
        "toolName": call.name,
        "input": call.arguments,
        "state": STATE_APPROVAL_REQUESTED,
        "approval": {"id": approval_id_for(call.call_id)},
    }


def render_ui_messages(session: ChatSession) -> list[dict[str, Any]]:
    """Render a session's history as UI messages.

    Args:
        session: The session to render

    Returns:
        List of ``{"id", "role", "parts"[, "metadata"]}`` dicts, system and
        tool-role messages excluded
    """
    rendered: list[dict[str, Any]] = []
    tool_parts: dict[str, dict[str, Any]] = {}

    for index, message in enumerate(session.messages):
        if message.role == Role.SYSTEM:
            continue

        if message.role == Role.TOOL:
            for result in message.tool_results:
                part = tool_parts.get(result.call_id)
                if part is None:
                    logger.debug(f"Tool result {result.call_id} has no matching call")
                    continue
                part.pop("approval", None)
                if result.denied:
                    part["state"] = STATE_OUTPUT_DENIED
                else:
                    part["state"] = STATE_OUTPUT_AVAILABLE
                    part["output"] = result.result
            continue

        parts: list[dict[str, Any]] = []
        for content in message.contents:
            if isinstance(content, TextContent):
                if content.text:
                    parts.append({"type": "text", "text": content.text})
            elif isinstance(content, ToolCallContent):
                part = _tool_part(content)
                tool_parts[content.call_id] = part
                parts.append(part)

        entry: dict[str, Any] = {
            "id": message_id(session, index),
            "role": "user" if message.role == Role.USER else "assistant",
            "parts": parts,
        }
        usage = session.message_usage.get(index)
        if usage is not None:
            entry["metadata"] = {"usage": usage.to_dict()}
        rendered.append(entry)

    return rendered
