"""HTTP API routes."""

from .health import health_routes
from .images import image_routes
from .session import session_routes

__all__ = [
    "health_routes",
    "image_routes",
    "session_routes",
]
