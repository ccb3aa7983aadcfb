"""Chat session endpoints.

Provides CRUD operations for sessions, history rendering and the streaming
turn endpoint. Shared state (store and orchestrator) lives on
``request.app.state`` and is set up by ``create_app``.
"""

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from ..orchestrator import ChatOrchestrator, SessionNotFoundError
from ..protocol.history import render_ui_messages
from ..protocol.messages import ChatRequest
from ..protocols.approval import ApprovalMismatchError
from ..protocols.streaming import STREAM_HEADERS, UIMessageStreamWriter
from ..session_store import SessionStore

logger = logging.getLogger(__name__)


def _store(request: Request) -> SessionStore:
    return request.app.state.store


def _orchestrator(request: Request) -> ChatOrchestrator:
    return request.app.state.orchestrator


def _not_found(session_id: str) -> JSONResponse:
    return JSONResponse({"error": f"Session not found: {session_id}"}, status_code=404)


# =============================================================================
# Turn Streaming
# =============================================================================


async def stream_turn(
    session_id: str,
    run: Callable[[UIMessageStreamWriter], Awaitable[Any]],
) -> AsyncIterator[str]:
    """Run a turn in a background task and yield its frames as they arrive.

    Failures inside the turn are logged and reported as an error frame.
    When the consumer stops early (client disconnect) the task is cancelled
    and awaited, so the model stream and any running tool have unwound
    before this generator closes.
    """
    queue: asyncio.Queue[str | None] = asyncio.Queue()

    async def send(frame: str) -> None:
        await queue.put(frame)

    writer = UIMessageStreamWriter(send)

    async def drive() -> None:
        try:
            await run(writer)
        except asyncio.CancelledError:
            logger.info(f"Session {session_id}: turn cancelled")
            raise
        except Exception as e:
            logger.exception(f"Session {session_id}: turn failed")
            if not writer.finished:
                await writer.write_error(str(e))
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(drive())
    try:
        while True:
            frame = await queue.get()
            if frame is None:
                break
            yield frame
    finally:
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


# =============================================================================
# Route Handlers
# =============================================================================


async def list_sessions(request: Request) -> JSONResponse:
    """List all sessions, most recently updated first."""
    return JSONResponse([s.to_summary() for s in _store(request).list_all()])


async def create_session(request: Request) -> JSONResponse:
    """Create a new session."""
    session = _store(request).create()
    return JSONResponse({"id": session.id, "title": session.title}, status_code=201)


async def get_session(request: Request) -> JSONResponse:
    """Get a session by ID."""
    session_id = request.path_params["session_id"]
    session = _store(request).get(session_id)

    if not session:
        return _not_found(session_id)

    return JSONResponse(session.to_dict())


async def delete_session(request: Request) -> Response:
    """Delete a session."""
    session_id = request.path_params["session_id"]

    if not _store(request).delete(session_id):
        return _not_found(session_id)

    return Response(status_code=204)


async def get_messages(request: Request) -> JSONResponse:
    """Get a session's history rendered as UI messages."""
    session_id = request.path_params["session_id"]
    session = _store(request).get(session_id)

    if not session:
        return _not_found(session_id)

    return JSONResponse(render_ui_messages(session))


async def send_message(request: Request) -> Response:
    """Run one pass of a chat turn and stream it as a UI message stream.

    The request is validated and its approvals matched before the response
    starts, so bad requests get a plain JSON error instead of a stream.
    The turn itself runs in a background task that feeds frames through a
    queue; if the client goes away the task is cancelled and awaited.
    """
    session_id = request.path_params["session_id"]
    orchestrator = _orchestrator(request)

    try:
        body = await request.json()
        chat_request = ChatRequest.model_validate(body)
    except json.JSONDecodeError as e:
        return JSONResponse({"error": f"Invalid JSON body: {e}"}, status_code=400)
    except ValidationError as e:
        return JSONResponse(
            {"error": "Invalid request body", "details": e.errors(include_url=False)},
            status_code=400,
        )

    try:
        prepared = orchestrator.resolve(session_id, chat_request)
    except SessionNotFoundError:
        return _not_found(session_id)
    except ApprovalMismatchError as e:
        return JSONResponse({"error": str(e), "toolCallIds": e.tool_call_ids}, status_code=400)

    async def run(writer: UIMessageStreamWriter) -> None:
        await orchestrator.run_turn(session_id, chat_request, writer, prepared=prepared)

    return StreamingResponse(
        stream_turn(session_id, run),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


# =============================================================================
# Route Definitions
# =============================================================================


session_routes = [
    Route("/sessions", list_sessions, methods=["GET"]),
    Route("/sessions", create_session, methods=["POST"]),
    Route("/sessions/{session_id}", get_session, methods=["GET"]),
    Route("/sessions/{session_id}", delete_session, methods=["DELETE"]),
    Route("/sessions/{session_id}/messages", get_messages, methods=["GET"]),
    Route("/sessions/{session_id}/messages", send_message, methods=["POST"]),
]
