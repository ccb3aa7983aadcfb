"""Inference client interface.

The orchestrator talks to the model through ChatClient: given the ordered
conversation and the tool schemas, the client yields a lazy stream of
updates. Cancelling the consuming task must abort the upstream request.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..models import Message, Usage


@dataclass(frozen=True)
class TextUpdate:
    """A fragment of model text (may contain inline reasoning markers)."""

    text: str


@dataclass(frozen=True)
class ReasoningUpdate:
    """Reasoning text delivered out of band by the model server."""

    text: str


@dataclass(frozen=True)
class ToolCallUpdate:
    """A tool call emitted by the model.

    The same call_id may be reported more than once while arguments are
    still accumulating; the latest version wins.
    """

    call_id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UsageUpdate:
    """Token usage summary for the generation step."""

    usage: Usage


ChatUpdate = TextUpdate | ReasoningUpdate | ToolCallUpdate | UsageUpdate


@runtime_checkable
class ChatClient(Protocol):
    """Streaming chat completion client."""

    def stream(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[ChatUpdate]: ...
