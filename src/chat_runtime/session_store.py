"""In-memory session store.

Holds every chat session for the lifetime of the process, keyed by id.
The store is the single shared mutable resource in the runtime: routes
and the orchestrator receive it explicitly rather than reaching for a
module-level singleton.

Contract:
- Inputs: session ids (str), roles, text or rich messages, usage
- Outputs: ChatSession objects, new message indices
- Side Effects: mutation of the in-memory session map only
- Errors: none observable; lookups of unknown ids return None / False
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime

from .models import (
    DEFAULT_TITLE,
    ChatSession,
    Message,
    Role,
    ToolCallContent,
    Usage,
    derive_title,
)

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

THINKING_INSTRUCTION = (
    " Always wrap your internal reasoning inside <think>...</think> tags before"
    " giving your final answer."
    " The content inside <think> tags will be hidden from the user by default."
)


class SessionStore:
    """Thread-safe map of chat sessions.

    All operations are atomic per call. The lock is never held across an
    await; appends are pure insertions and usage writes are pure overwrites
    keyed by message index, so no caller needs a check-then-act sequence.

    Two concurrent turns on the same session are not coordinated here; the
    client is expected to wait for one pass to finish before sending the next.
    """

    def __init__(
        self,
        *,
        thinking_enabled: bool = False,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        self._thinking_enabled = thinking_enabled
        self._system_prompt = system_prompt
        self._sessions: dict[str, ChatSession] = {}
        self._lock = threading.Lock()

    @property
    def thinking_enabled(self) -> bool:
        return self._thinking_enabled

    def create(self) -> ChatSession:
        """Create a session seeded with the system message."""
        prompt = self._system_prompt
        if self._thinking_enabled:
            prompt += THINKING_INSTRUCTION
        session = ChatSession(system_prompt=prompt)
        with self._lock:
            self._sessions[session.id] = session
        logger.info(f"Created session {session.id}")
        return session

    def get(self, session_id: str) -> ChatSession | None:
        if not session_id:
            return None
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info(f"Deleted session {session_id}")
        return removed is not None

    def list_all(self) -> list[ChatSession]:
        """All sessions, most recently updated first."""
        with self._lock:
            sessions = list(self._sessions.values())
        sessions.sort(key=lambda s: s.updated_at, reverse=True)
        return sessions

    def append_message(self, session_id: str, role: Role, text: str) -> int | None:
        """Append a plain text message. No-op if the session is absent."""
        return self.append(session_id, Message.from_text(role, text))

    def append(self, session_id: str, message: Message) -> int | None:
        """Append a message and bump the update timestamp.

        Returns:
            Index of the appended message, or None if the session is absent
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session.messages.append(message)
            session.updated_at = datetime.now(UTC)
            index = len(session.messages) - 1
        logger.debug(f"Session {session_id}: appended {message.role.value} message at {index}")
        return index

    def record_usage(self, session_id: str, message_index: int, usage: Usage) -> None:
        """Attach (or overwrite) usage for a message index."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return
            session.message_usage[message_index] = usage

    def auto_title(self, session_id: str, user_text: str) -> bool:
        """Title the session from its first user message.

        Applies only while the title is still the default and the session
        holds at most one user message.

        Returns:
            True if the title was changed
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.title != DEFAULT_TITLE:
                return False
            if session.user_message_count > 1 or not user_text:
                return False
            session.title = derive_title(user_text)
            return True

    def pending_tool_calls(self, session_id: str) -> list[ToolCallContent]:
        """Tool calls that have not been answered by a tool result yet."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return []
            messages = list(session.messages)

        answered = {r.call_id for m in messages for r in m.tool_results}
        return [
            call
            for m in messages
            if m.role == Role.ASSISTANT
            for call in m.tool_calls
            if call.call_id not in answered
        ]

    @property
    def count(self) -> int:
        """Number of sessions held."""
        with self._lock:
            return len(self._sessions)
