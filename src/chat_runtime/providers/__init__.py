"""Inference client implementations."""

from .base import (
    ChatClient,
    ChatUpdate,
    ReasoningUpdate,
    TextUpdate,
    ToolCallUpdate,
    UsageUpdate,
)
from .openai_provider import OpenAIChatClient

__all__ = [
    "ChatClient",
    "ChatUpdate",
    "OpenAIChatClient",
    "ReasoningUpdate",
    "TextUpdate",
    "ToolCallUpdate",
    "UsageUpdate",
]
