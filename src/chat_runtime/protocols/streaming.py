"""UI message stream writer.

Serializes turn output as Server-Sent Events using the UI message stream
protocol (v1) understood by AI SDK chat clients. Each frame is
``data: {json}\\n\\n`` and the stream ends with ``data: [DONE]\\n\\n``.

Frame types:
    text-start / text-delta / text-end                 Answer text part
    reasoning-start / reasoning-delta / reasoning-end  Reasoning part
    tool-input-start / tool-input-available            Tool call announced
    tool-approval-request                              Waiting for user consent
    tool-output-available / tool-output-denied         Tool outcome
    message-metadata                                   Usage for a generation step
    error                                              Stream-level failure
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from ..models import Usage

logger = logging.getLogger(__name__)

DONE_FRAME = "data: [DONE]\n\n"

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
    "x-vercel-ai-ui-message-stream": "v1",
}


class StreamClosedError(RuntimeError):
    """Raised when writing to a stream that has already finished."""


def approval_id_for(tool_call_id: str) -> str:
    """Approval id shown to the client for a pending tool call.

    Derived from the call id so a live stream and a later history fetch
    present the same id.
    """
    return f"approval_{tool_call_id}"


def encode_frame(payload: dict[str, Any]) -> str:
    """Encode a payload as a single SSE data frame."""
    return f"data: {json.dumps(payload, default=str)}\n\n"


def _new_part_id() -> str:
    return uuid.uuid4().hex[:8]


class UIMessageStreamWriter:
    """Single-writer, strictly ordered frame emitter for one response.

    At most one text part and one reasoning part are open at a time, and
    only one of them can be active: writing a delta to one channel closes
    the other channel's part first. Tool, metadata and finish frames close
    any open part before they are written.
    """

    def __init__(self, send_fn: Callable[[str], Awaitable[None]] | None = None) -> None:
        """Initialize the writer.

        Args:
            send_fn: Async function receiving each encoded frame
        """
        self._send_fn = send_fn
        self._text_part_id: str | None = None
        self._reasoning_part_id: str | None = None
        self._frame_count = 0
        self._finished = False

    def set_send_fn(self, send_fn: Callable[[str], Awaitable[None]]) -> None:
        """Set the send function after initialization."""
        self._send_fn = send_fn

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def open_text_part(self) -> str | None:
        return self._text_part_id

    @property
    def open_reasoning_part(self) -> str | None:
        return self._reasoning_part_id

    async def _send(self, frame: str) -> None:
        if self._finished:
            raise StreamClosedError("Stream already finished")
        if self._send_fn is None:
            raise RuntimeError("No send function configured")
        self._frame_count += 1
        await self._send_fn(frame)

    async def _write(self, payload: dict[str, Any]) -> None:
        await self._send(encode_frame(payload))

    # ------------------------------------------------------------------
    # Content parts
    # ------------------------------------------------------------------

    async def write_text_delta(self, text: str) -> None:
        if not text:
            return
        await self._end_reasoning_part()
        if self._text_part_id is None:
            self._text_part_id = _new_part_id()
            await self._write({"type": "text-start", "id": self._text_part_id})
        await self._write({"type": "text-delta", "id": self._text_part_id, "delta": text})

    async def write_reasoning_delta(self, text: str) -> None:
        if not text:
            return
        await self._end_text_part()
        if self._reasoning_part_id is None:
            self._reasoning_part_id = _new_part_id()
            await self._write({"type": "reasoning-start", "id": self._reasoning_part_id})
        await self._write(
            {"type": "reasoning-delta", "id": self._reasoning_part_id, "delta": text}
        )

    async def _end_text_part(self) -> None:
        if self._text_part_id is not None:
            part_id, self._text_part_id = self._text_part_id, None
            await self._write({"type": "text-end", "id": part_id})

    async def _end_reasoning_part(self) -> None:
        if self._reasoning_part_id is not None:
            part_id, self._reasoning_part_id = self._reasoning_part_id, None
            await self._write({"type": "reasoning-end", "id": part_id})

    async def close_parts(self) -> None:
        """Close any open text or reasoning part."""
        await self._end_text_part()
        await self._end_reasoning_part()

    # ------------------------------------------------------------------
    # Tool lifecycle
    # ------------------------------------------------------------------

    async def write_tool_call(
        self, tool_call_id: str, tool_name: str, arguments: dict[str, Any]
    ) -> None:
        """Announce a tool call and its complete input."""
        await self.close_parts()
        await self._write(
            {
                "type": "tool-input-start",
                "toolCallId": tool_call_id,
                "toolName": tool_name,
                "dynamic": True,
            }
        )
        await self._write(
            {
                "type": "tool-input-available",
                "toolCallId": tool_call_id,
                "toolName": tool_name,
                "input": arguments,
                "dynamic": True,
            }
        )

    async def write_tool_approval_request(self, tool_call_id: str) -> None:
        await self.close_parts()
        await self._write(
            {
                "type": "tool-approval-request",
                "toolCallId": tool_call_id,
                "approvalId": approval_id_for(tool_call_id),
            }
        )

    async def write_tool_result(self, tool_call_id: str, output: Any) -> None:
        await self.close_parts()
        await self._write(
            {"type": "tool-output-available", "toolCallId": tool_call_id, "output": output}
        )

    async def write_tool_output_denied(self, tool_call_id: str) -> None:
        await self.close_parts()
        await self._write({"type": "tool-output-denied", "toolCallId": tool_call_id})

    # ------------------------------------------------------------------
    # Step / stream framing
    # ------------------------------------------------------------------

    async def write_message_metadata(self, usage: Usage) -> None:
        """Write usage for a completed generation step, outside any part."""
        await self.close_parts()
        await self._write(
            {"type": "message-metadata", "messageMetadata": {"usage": usage.to_dict()}}
        )

    async def write_error(self, error_text: str) -> None:
        """Report a stream-level failure. The stream is closed afterwards."""
        await self.close_parts()
        await self._write({"type": "error", "errorText": error_text})
        self._finished = True

    async def finish(self) -> None:
        """Close open parts and terminate the stream with the sentinel."""
        await self.close_parts()
        await self._send(DONE_FRAME)
        self._finished = True
        logger.debug(f"Stream finished after {self._frame_count} frames")
