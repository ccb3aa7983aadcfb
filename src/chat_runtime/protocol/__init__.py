"""Client-facing message shapes.

Inbound request bodies are parsed into typed models in ``messages``;
stored sessions are rendered back into the same UI message shape in
``history``.
"""

from .messages import ChatRequest, ToolApproval, UIMessage
from .history import message_id, render_ui_messages

__all__ = [
    "ChatRequest",
    "ToolApproval",
    "UIMessage",
    "message_id",
    "render_ui_messages",
]
