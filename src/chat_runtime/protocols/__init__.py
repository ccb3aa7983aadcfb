"""Streaming protocol pieces used while running a turn.

- reasoning: split model text into reasoning and answer channels
- approval: match client approval decisions to pending tool calls
- streaming: write the UI message stream (SSE) for a turn
"""

from .streaming import (
    DONE_FRAME,
    STREAM_HEADERS,
    StreamClosedError,
    UIMessageStreamWriter,
    approval_id_for,
)
from .reasoning import Channel, Segment, TagSplitter, split_tagged_stream
from .approval import (
    ApprovalMismatchError,
    ApprovalPolicy,
    ResolvedApproval,
    resolve_approvals,
)

__all__ = [
    "DONE_FRAME",
    "STREAM_HEADERS",
    "ApprovalMismatchError",
    "ApprovalPolicy",
    "Channel",
    "ResolvedApproval",
    "Segment",
    "StreamClosedError",
    "TagSplitter",
    "UIMessageStreamWriter",
    "approval_id_for",
    "resolve_approvals",
    "split_tagged_stream",
]
