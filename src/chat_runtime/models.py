"""Conversation data model.

Sessions hold an ordered list of messages. Each message carries a role and
a list of typed content items (text, tool call, tool result). Usage is
tracked separately, keyed by the index of the assistant message it
describes, so message indices must stay stable once assigned.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

DEFAULT_TITLE = "New Chat"
TITLE_MAX_LENGTH = 60


class Role(str, Enum):
    """Message author roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class TextContent:
    """Plain text content."""

    text: str


@dataclass
class ToolCallContent:
    """A tool invocation requested by the model."""

    call_id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResultContent:
    """The outcome of a tool call, correlated by call_id.

    Attributes:
        call_id: Id of the tool call this result answers
        result: Result payload (any JSON-serializable value)
        denied: True when the result was synthesized because the user
            declined the call
    """

    call_id: str
    result: Any = None
    denied: bool = False


ContentItem = TextContent | ToolCallContent | ToolResultContent


@dataclass
class Message:
    """A single conversation message."""

    role: Role
    contents: list[ContentItem] = field(default_factory=list)

    @classmethod
    def from_text(cls, role: Role, text: str) -> Message:
        return cls(role=role, contents=[TextContent(text=text)])

    @property
    def text(self) -> str:
        """Concatenated text of all text items."""
        return "".join(c.text for c in self.contents if isinstance(c, TextContent))

    @property
    def tool_calls(self) -> list[ToolCallContent]:
        return [c for c in self.contents if isinstance(c, ToolCallContent)]

    @property
    def tool_results(self) -> list[ToolResultContent]:
        return [c for c in self.contents if isinstance(c, ToolResultContent)]


@dataclass
class Usage:
    """Token accounting reported by the model for one generation step."""

    input_tokens: int = 0
    output_tokens: int = 0
    cached_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(
        cls,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
        cached_tokens: int | None = None,
        total_tokens: int | None = None,
    ) -> Usage:
        """Build usage from possibly missing counts.

        Missing counts become zero; a missing total is derived as
        input + output (cached tokens are a subset of input tokens).
        """
        inp = input_tokens or 0
        out = output_tokens or 0
        return cls(
            input_tokens=inp,
            output_tokens=out,
            cached_tokens=cached_tokens or 0,
            total_tokens=total_tokens if total_tokens is not None else inp + out,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "cachedTokens": self.cached_tokens,
            "totalTokens": self.total_tokens,
        }


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ChatSession:
    """A conversation with its message history and usage annotations.

    The first message is always the system message. Messages are append-only
    so that the indices used as keys in ``message_usage`` stay valid.
    """

    system_prompt: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    title: str = DEFAULT_TITLE
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    messages: list[Message] = field(default_factory=list)
    message_usage: dict[int, Usage] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.messages:
            self.messages.append(Message.from_text(Role.SYSTEM, self.system_prompt))

    @property
    def user_message_count(self) -> int:
        return sum(1 for m in self.messages if m.role == Role.USER)

    def to_summary(self) -> dict[str, Any]:
        """Serialize for session listings."""
        return {
            "id": self.id,
            "title": self.title,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    def to_dict(self) -> dict[str, Any]:
        return {**self.to_summary(), "messageCount": len(self.messages)}


def derive_title(text: str) -> str:
    """Derive a session title from the first user message."""
    text = text.strip()
    if len(text) <= TITLE_MAX_LENGTH:
        return text
    return text[:TITLE_MAX_LENGTH] + "..."
