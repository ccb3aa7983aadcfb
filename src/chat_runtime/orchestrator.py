"""Chat turn orchestration.

A turn runs as one or more passes over HTTP:

1. Generation pass: the user's message is stored, the model is streamed,
   and any tool calls it asks for are announced to the client together
   with an approval request. Nothing is executed.
2. Approval pass: the client resubmits with approval decisions. Approved
   calls run, declined calls get a synthesized result, all results are
   stored as one tool message, and the model resumes. If it asks for more
   tools the cycle repeats with another approval request.

Each pass is tracked as a ChatTurn moving through TurnState values, so the
pass type is decided once from the request instead of being re-derived at
every step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .models import (
    ContentItem,
    Message,
    Role,
    TextContent,
    ToolCallContent,
    ToolResultContent,
    Usage,
)
from .protocol.messages import ChatRequest, ToolApproval
from .protocols.approval import (
    ApprovalPolicy,
    ResolvedApproval,
    declined_result,
    error_result,
    resolve_approvals,
)
from .protocols.reasoning import (
    DEFAULT_CLOSE_TAG,
    DEFAULT_OPEN_TAG,
    Channel,
    Segment,
    TagSplitter,
)
from .protocols.streaming import UIMessageStreamWriter
from .providers.base import ChatClient, ReasoningUpdate, TextUpdate, ToolCallUpdate, UsageUpdate
from .session_store import SessionStore
from .tools import ToolRegistry

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    """Raised when a turn targets a session that does not exist."""


class InvalidTurnTransition(RuntimeError):
    """Raised when a turn is moved along an edge the state machine forbids."""


class TurnState(str, Enum):
    """States of one pass through a turn."""

    AWAITING_GENERATION = "awaiting_generation"
    AWAITING_APPROVAL = "awaiting_approval"
    EXECUTING = "executing"
    RESUMING = "resuming"
    DONE = "done"


_TRANSITIONS: dict[TurnState, frozenset[TurnState]] = {
    TurnState.AWAITING_GENERATION: frozenset({TurnState.AWAITING_APPROVAL, TurnState.DONE}),
    TurnState.EXECUTING: frozenset({TurnState.RESUMING, TurnState.DONE}),
    TurnState.RESUMING: frozenset({TurnState.AWAITING_APPROVAL, TurnState.DONE}),
    TurnState.AWAITING_APPROVAL: frozenset(),
    TurnState.DONE: frozenset(),
}


@dataclass
class ChatTurn:
    """State of a single pass.

    Attributes:
        session_id: Session the pass belongs to
        approvals: Approval decisions carried by the request
        state: Current state
        history: States visited, in order
    """

    session_id: str
    approvals: list[ToolApproval] = field(default_factory=list)
    state: TurnState = TurnState.AWAITING_GENERATION
    history: list[TurnState] = field(default_factory=list)

    @classmethod
    def from_request(cls, session_id: str, request: ChatRequest) -> ChatTurn:
        approvals = request.current_approvals()
        state = TurnState.EXECUTING if approvals else TurnState.AWAITING_GENERATION
        return cls(session_id=session_id, approvals=approvals, state=state, history=[state])

    @property
    def is_terminal(self) -> bool:
        return self.state in (TurnState.AWAITING_APPROVAL, TurnState.DONE)

    def transition(self, new_state: TurnState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTurnTransition(f"Cannot move turn from {self.state.value} to {new_state.value}")
        logger.debug(f"Turn {self.session_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)


@dataclass
class GenerationResult:
    """What one fully drained generation step produced."""

    answer: str = ""
    tool_calls: list[ToolCallContent] = field(default_factory=list)
    usage: Usage | None = None
    message_index: int | None = None


class ChatOrchestrator:
    """Drives chat turns against a session store, model and tool registry."""

    def __init__(
        self,
        store: SessionStore,
        chat_client: ChatClient,
        tools: ToolRegistry,
        *,
        thinking_enabled: bool = False,
        approval_policy: ApprovalPolicy = ApprovalPolicy.IGNORE,
        open_tag: str = DEFAULT_OPEN_TAG,
        close_tag: str = DEFAULT_CLOSE_TAG,
    ) -> None:
        self._store = store
        self._chat_client = chat_client
        self._tools = tools
        self._thinking_enabled = thinking_enabled
        self._approval_policy = approval_policy
        self._open_tag = open_tag
        self._close_tag = close_tag

    @property
    def store(self) -> SessionStore:
        return self._store

    def resolve(self, session_id: str, request: ChatRequest) -> tuple[ChatTurn, list[ResolvedApproval]]:
        """Validate a request before any frame is written.

        Raises:
            SessionNotFoundError: If the session does not exist
            ApprovalMismatchError: If approvals are rejected by policy
        """
        if self._store.get(session_id) is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        turn = ChatTurn.from_request(session_id, request)
        resolved: list[ResolvedApproval] = []
        if turn.approvals:
            resolved = resolve_approvals(
                turn.approvals,
                self._store.pending_tool_calls(session_id),
                self._approval_policy,
            )
        return turn, resolved

    async def run_turn(
        self,
        session_id: str,
        request: ChatRequest,
        writer: UIMessageStreamWriter,
        *,
        prepared: tuple[ChatTurn, list[ResolvedApproval]] | None = None,
    ) -> ChatTurn:
        """Run one pass of a turn, writing frames as they are produced.

        Args:
            session_id: Target session
            request: Parsed request body
            writer: Stream writer for this response
            prepared: Result of resolve() if the caller already validated

        Returns:
            The finished turn (AWAITING_APPROVAL or DONE)
        """
        turn, resolved = prepared or self.resolve(session_id, request)

        if turn.state == TurnState.EXECUTING:
            if not resolved:
                logger.warning(f"Session {session_id}: no approvals matched a pending call")
                turn.transition(TurnState.DONE)
                await writer.finish()
                return turn
            await self._execute_approved(session_id, resolved, writer)
            turn.transition(TurnState.RESUMING)
        else:
            self._record_user_message(session_id, request)

        result = await self._generate(session_id, writer)
        if result.tool_calls:
            for call in result.tool_calls:
                await writer.write_tool_call(call.call_id, call.name, call.arguments)
                await writer.write_tool_approval_request(call.call_id)
            turn.transition(TurnState.AWAITING_APPROVAL)
        else:
            turn.transition(TurnState.DONE)

        if result.usage is not None:
            await writer.write_message_metadata(result.usage)

        await writer.finish()
        logger.info(
            f"Session {session_id}: pass finished in state {turn.state.value} "
            f"({len(result.tool_calls)} tool call(s) pending)"
        )
        return turn

    def _record_user_message(self, session_id: str, request: ChatRequest) -> None:
        user_text = request.latest_user_text()
        if user_text is None:
            return
        self._store.append_message(session_id, Role.USER, user_text)
        if self._store.auto_title(session_id, user_text):
            logger.debug(f"Session {session_id}: titled from first message")

    async def _execute_approved(
        self,
        session_id: str,
        resolved: list[ResolvedApproval],
        writer: UIMessageStreamWriter,
    ) -> None:
        """Run approved calls, synthesize declines, store one tool message.

        Every matched call ends with a result, so none stays pending. A call
        naming a tool that is no longer registered fails like any other
        tool, with an error result.
        """
        results: list[ToolResultContent] = []

        for item in resolved:
            call = item.call
            if item.approval.tool_name != call.name:
                logger.warning(
                    f"Approval for {call.call_id} names '{item.approval.tool_name}', "
                    f"stored call is '{call.name}'"
                )

            if not item.approval.approved:
                results.append(
                    ToolResultContent(call.call_id, declined_result(call.name), denied=True)
                )
                await writer.write_tool_output_denied(call.call_id)
                continue

            output = await self._invoke_tool(call.name, item.arguments)
            results.append(ToolResultContent(call.call_id, output))
            await writer.write_tool_result(call.call_id, output)

        if results:
            self._store.append(session_id, Message(role=Role.TOOL, contents=list(results)))

    async def _invoke_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        try:
            return await self._tools.invoke(name, arguments)
        except Exception as e:
            logger.warning(f"Tool '{name}' failed: {e}")
            return error_result(e)

    async def _generate(self, session_id: str, writer: UIMessageStreamWriter) -> GenerationResult:
        """Stream one model response and persist it once fully drained."""
        session = self._store.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")

        splitter = TagSplitter(self._open_tag, self._close_tag, inside=self._thinking_enabled)
        answer_parts: list[str] = []
        calls: dict[str, ToolCallContent] = {}
        usage: Usage | None = None

        async def forward(segments: list[Segment]) -> None:
            for segment in segments:
                if segment.channel == Channel.REASONING:
                    await writer.write_reasoning_delta(segment.text)
                else:
                    answer_parts.append(segment.text)
                    await writer.write_text_delta(segment.text)

        messages = list(session.messages)
        async for update in self._chat_client.stream(messages, self._tools.definitions()):
            if isinstance(update, TextUpdate):
                await forward(splitter.feed(update.text))
            elif isinstance(update, ReasoningUpdate):
                await writer.write_reasoning_delta(update.text)
            elif isinstance(update, ToolCallUpdate):
                # Last write wins for repeated ids; first-seen order is kept
                calls[update.call_id] = ToolCallContent(
                    call_id=update.call_id, name=update.name, arguments=dict(update.arguments)
                )
            elif isinstance(update, UsageUpdate):
                usage = update.usage
        await forward(splitter.flush())

        result = GenerationResult(
            answer="".join(answer_parts),
            tool_calls=list(calls.values()),
            usage=usage,
        )

        # Stored without surrounding whitespace left over from stripped reasoning
        contents: list[ContentItem] = []
        if result.answer.strip():
            contents.append(TextContent(result.answer.strip()))
        contents.extend(result.tool_calls)
        if contents:
            result.message_index = self._store.append(
                session_id, Message(role=Role.ASSISTANT, contents=contents)
            )
        if usage is not None and result.message_index is not None:
            self._store.record_usage(session_id, result.message_index, usage)

        return result
