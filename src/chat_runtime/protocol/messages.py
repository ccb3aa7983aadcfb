"""Inbound chat request models.

The client resubmits its full message list on every turn. Each message
carries typed parts; the part type is resolved once here, at the boundary,
into a closed set of models instead of being inspected field by field later.

Example request body:
    {
        "id": "chat_1",
        "messages": [
            {"id": "m1", "role": "user", "parts": [{"type": "text", "text": "What time is it?"}]},
            {
                "id": "m2",
                "role": "assistant",
                "parts": [
                    {
                        "type": "dynamic-tool",
                        "toolCallId": "call_1",
                        "toolName": "get_current_time",
                        "state": "approval-responded",
                        "input": {},
                        "approval": {"id": "approval_call_1", "approved": true}
                    }
                ]
            }
        ]
    }
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel

APPROVAL_RESPONDED = "approval-responded"


class WireModel(BaseModel):
    """Base for camelCase wire models that tolerate unknown fields."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class TextPart(WireModel):
    type: Literal["text"] = "text"
    text: str = ""


class ReasoningPart(WireModel):
    type: Literal["reasoning"] = "reasoning"
    text: str = ""


class ApprovalInfo(WireModel):
    """Approval state attached to a tool part."""

    id: str | None = None
    approved: bool | None = None
    reason: str | None = None


class ToolPart(WireModel):
    """A tool invocation part.

    Dynamic tools use ``type == "dynamic-tool"`` and carry ``toolName``;
    statically typed tools encode the name in the type (``tool-<name>``).
    """

    type: str
    tool_call_id: str
    tool_name: str | None = None
    state: str | None = None
    input: Any = None
    output: Any = None
    error_text: str | None = None
    approval: ApprovalInfo | None = None

    @property
    def name(self) -> str | None:
        if self.tool_name:
            return self.tool_name
        if self.type.startswith("tool-"):
            return self.type[len("tool-") :]
        return None


class OtherPart(WireModel):
    """Any part type the runtime does not interpret (step-start, file, ...)."""

    model_config = ConfigDict(extra="allow")

    type: str


def _part_kind(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if kind in ("text", "reasoning"):
        return kind
    if kind == "dynamic-tool" or (isinstance(kind, str) and kind.startswith("tool-")):
        return "tool"
    return "other"


UIPart = Annotated[
    Annotated[TextPart, Tag("text")]
    | Annotated[ReasoningPart, Tag("reasoning")]
    | Annotated[ToolPart, Tag("tool")]
    | Annotated[OtherPart, Tag("other")],
    Discriminator(_part_kind),
]


class UIMessage(WireModel):
    id: str | None = None
    role: str
    parts: list[UIPart] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None

    @property
    def text(self) -> str | None:
        """Concatenated text parts, or None if the message has none."""
        texts = [p.text for p in self.parts if isinstance(p, TextPart)]
        return "".join(texts) if texts else None


@dataclass(frozen=True)
class ToolApproval:
    """A user's decision on a pending tool call.

    Derived from the request; consumed once and never stored.
    """

    tool_call_id: str
    tool_name: str
    approved: bool
    input: Any = None


def _collect_approvals(messages: list[UIMessage]) -> list[ToolApproval]:
    approvals: list[ToolApproval] = []
    for message in messages:
        if message.role.lower() != "assistant":
            continue
        for part in message.parts:
            if not isinstance(part, ToolPart) or part.state != APPROVAL_RESPONDED:
                continue
            name = part.name
            if not name or part.approval is None or part.approval.approved is None:
                continue
            approvals.append(
                ToolApproval(
                    tool_call_id=part.tool_call_id,
                    tool_name=name,
                    approved=part.approval.approved,
                    input=part.input,
                )
            )
    return approvals


class ChatRequest(WireModel):
    """Body of a chat turn request."""

    id: str | None = None
    messages: list[UIMessage] = Field(default_factory=list)

    def latest_user_text(self) -> str | None:
        """Text of the most recent user message."""
        for message in reversed(self.messages):
            if message.role.lower() == "user":
                return message.text
        return None

    def tool_approvals(self) -> list[ToolApproval]:
        """Approval decisions attached to assistant messages, in order."""
        return _collect_approvals(self.messages)

    def current_approvals(self) -> list[ToolApproval]:
        """Approval decisions not superseded by a later user message.

        A user who answers an approval prompt with a new question instead
        moves the conversation on; decisions left behind in earlier
        assistant messages no longer drive the turn.
        """
        last_user = -1
        for index, message in enumerate(self.messages):
            if message.role.lower() == "user":
                last_user = index
        return _collect_approvals(self.messages[last_user + 1 :])
