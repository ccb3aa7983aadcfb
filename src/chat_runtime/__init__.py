"""Chat Runtime - streaming chat server with human-approved tool calls."""

__version__ = "0.1.0"
