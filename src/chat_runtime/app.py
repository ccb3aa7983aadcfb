"""Chat Runtime Application.

Creates the Starlette ASGI application with all routes.

Route organization:
- /health - Health check
- /api/chat/sessions/* - Session management and streaming turns
- /api/images/{filename} - Image files referenced by tool output
"""

import logging

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Mount, Route

from .builtin_tools import register_builtin_tools
from .config import RuntimeConfig
from .orchestrator import ChatOrchestrator
from .providers import ChatClient, OpenAIChatClient
from .routes import health_routes, image_routes, session_routes
from .session_store import SessionStore
from .tools import ToolRegistry

logger = logging.getLogger(__name__)


def create_app(
    config: RuntimeConfig | None = None,
    *,
    store: SessionStore | None = None,
    chat_client: ChatClient | None = None,
    tools: ToolRegistry | None = None,
) -> Starlette:
    """Create the chat runtime application.

    Called with no arguments (as the uvicorn factory does) everything is
    built from the environment. Tests pass their own collaborators.

    Args:
        config: Runtime settings; read from the environment when omitted
        store: Session store to use
        chat_client: Inference client; an OpenAI-compatible one by default
        tools: Tool registry; builtin tools are added when enabled

    Returns:
        Configured Starlette application
    """
    config = config or RuntimeConfig.from_env()

    if store is None:
        store = SessionStore(thinking_enabled=config.thinking, system_prompt=config.system_prompt)

    if tools is None:
        tools = ToolRegistry()
    if config.builtin_tools:
        names = register_builtin_tools(tools)
        logger.info(f"Registered builtin tools: {', '.join(names)}")

    if chat_client is None:
        chat_client = OpenAIChatClient(
            config.model,
            api_key=config.api_key,
            base_url=config.endpoint,
        )
        logger.info(f"Using model {config.model} at {config.endpoint or 'default endpoint'}")

    orchestrator = ChatOrchestrator(
        store,
        chat_client,
        tools,
        thinking_enabled=config.thinking,
        approval_policy=config.approval_policy,
    )

    routes: list[Route | Mount] = []
    routes.extend(health_routes)
    routes.append(Mount("/api/chat", routes=session_routes))
    routes.append(Mount("/api/images", routes=image_routes))

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        ),
    ]

    app = Starlette(routes=routes, middleware=middleware)
    app.state.config = config
    app.state.store = store
    app.state.tools = tools
    app.state.orchestrator = orchestrator
    return app
