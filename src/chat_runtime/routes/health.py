"""Health check endpoint."""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route


async def health_check(request: Request) -> JSONResponse:
    """Report liveness along with a few runtime counters."""
    state = request.app.state
    return JSONResponse(
        {
            "status": "ok",
            "sessions": state.store.count,
            "tools": state.tools.count,
        }
    )


health_routes = [
    Route("/health", health_check, methods=["GET"]),
]
