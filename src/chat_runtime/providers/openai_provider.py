"""OpenAI-compatible streaming chat client.

Works against OpenAI itself or any server exposing the chat completions
API (LM Studio, vLLM, Ollama's OpenAI endpoint, ...).
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import openai
from tenacity import retry

from ..models import Message, Role, ToolResultContent, Usage
from .base import ChatUpdate, ReasoningUpdate, TextUpdate, ToolCallUpdate, UsageUpdate
from .common import default_retry_kwargs

logger = logging.getLogger(__name__)


def _result_text(result: ToolResultContent) -> str:
    if isinstance(result.result, str):
        return result.result
    return json.dumps(result.result, default=str)


def to_openai_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Convert stored messages to chat completions format.

    Tool calls that never received a result (for example a call skipped at
    approval time) are left out, since the API rejects an assistant tool
    call without a matching tool message.
    """
    answered = {r.call_id for m in messages for r in m.tool_results}
    out: list[dict[str, Any]] = []

    for msg in messages:
        if msg.role == Role.TOOL:
            for result in msg.tool_results:
                out.append(
                    {
                        "role": "tool",
                        "tool_call_id": result.call_id,
                        "content": _result_text(result),
                    }
                )
            continue

        if msg.role == Role.ASSISTANT:
            tool_calls = [
                {
                    "id": call.call_id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }
                for call in msg.tool_calls
                if call.call_id in answered
            ]
            oai_msg: dict[str, Any] = {"role": "assistant", "content": msg.text or None}
            if tool_calls:
                oai_msg["tool_calls"] = tool_calls
            elif oai_msg["content"] is None:
                oai_msg["content"] = ""
            out.append(oai_msg)
            continue

        out.append({"role": msg.role.value, "content": msg.text})

    return out


def to_openai_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert tool schemas to function-calling format."""
    return [
        {
            "type": "function",
            "function": {
                "name": t["name"],
                "description": t.get("description", ""),
                "parameters": t.get("parameters") or {"type": "object", "properties": {}},
            },
        }
        for t in tools
    ]


def _parse_arguments(raw: str) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse tool call arguments: {raw[:200]}")
        return {}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def _usage_from_chunk(usage: Any) -> Usage:
    details = getattr(usage, "prompt_tokens_details", None)
    return Usage.from_counts(
        input_tokens=getattr(usage, "prompt_tokens", None),
        output_tokens=getattr(usage, "completion_tokens", None),
        cached_tokens=getattr(details, "cached_tokens", None) if details else None,
        total_tokens=getattr(usage, "total_tokens", None),
    )


class OpenAIChatClient:
    """ChatClient backed by the openai async SDK."""

    def __init__(
        self,
        model: str,
        *,
        api_key: str,
        base_url: str | None = None,
        temperature: float | None = None,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._client = client or openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    @property
    def model(self) -> str:
        return self._model

    @retry(
        **default_retry_kwargs(
            (
                openai.RateLimitError,
                openai.APIConnectionError,
                openai.APITimeoutError,
            )
        )
    )
    async def _open_stream(self, kwargs: dict[str, Any]) -> Any:
        return await self._client.chat.completions.create(**kwargs)

    async def stream(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[ChatUpdate]:
        """Stream one completion.

        Text and reasoning deltas are yielded as they arrive. Tool calls
        arrive in pieces keyed by index and are yielded once complete, at
        the end of the stream, followed by usage if the server reported it.
        """
        oai_messages = to_openai_messages(messages)
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": oai_messages,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            kwargs["tools"] = to_openai_tools(tools)
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature

        logger.debug(
            f"API request: model={self._model}, messages={len(oai_messages)}, tools={len(tools)}"
        )
        stream = await self._open_stream(kwargs)

        # index -> {"id", "name", "arguments_parts"}
        tool_calls_acc: dict[int, dict[str, Any]] = {}
        usage: Usage | None = None

        try:
            async for chunk in stream:
                if getattr(chunk, "usage", None):
                    usage = _usage_from_chunk(chunk.usage)

                choice = chunk.choices[0] if chunk.choices else None
                if choice is None or choice.delta is None:
                    continue
                delta = choice.delta

                reasoning = getattr(delta, "reasoning_content", None)
                if reasoning:
                    yield ReasoningUpdate(reasoning)

                if delta.content:
                    yield TextUpdate(delta.content)

                for tc_delta in delta.tool_calls or []:
                    acc = tool_calls_acc.setdefault(
                        tc_delta.index, {"id": "", "name": "", "arguments_parts": []}
                    )
                    if tc_delta.id:
                        acc["id"] = tc_delta.id
                    if tc_delta.function:
                        if tc_delta.function.name:
                            acc["name"] = tc_delta.function.name
                        if tc_delta.function.arguments:
                            acc["arguments_parts"].append(tc_delta.function.arguments)
        finally:
            await stream.close()

        for idx in sorted(tool_calls_acc):
            acc = tool_calls_acc[idx]
            if not acc["id"] or not acc["name"]:
                logger.warning(f"Dropping incomplete tool call at index {idx}")
                continue
            yield ToolCallUpdate(
                call_id=acc["id"],
                name=acc["name"],
                arguments=_parse_arguments("".join(acc["arguments_parts"])),
            )

        if usage is not None:
            yield UsageUpdate(usage)

        logger.debug(f"API response: tool_calls={len(tool_calls_acc)}, usage={usage}")
