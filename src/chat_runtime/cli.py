"""Chat Runtime CLI.

Usage:
    chat-runtime                      # Serve on http://127.0.0.1:5000
    chat-runtime --port 8080          # Custom port
    chat-runtime --reload             # Auto-reload for development
    chat-runtime --health             # Check a running server and exit
    chat-runtime tools                # List the tools the server would expose

Model, endpoint and the other runtime settings are read from CHAT_RUNTIME_*
environment variables (see chat_runtime.config).
"""

from __future__ import annotations

import asyncio
import logging
import sys

import click
import httpx

from .config import RuntimeConfig


def _load_config() -> RuntimeConfig:
    try:
        return RuntimeConfig.from_env()
    except ValueError as e:
        raise click.UsageError(str(e)) from e


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.group(invoke_without_command=True)
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=5000, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (overrides CHAT_RUNTIME_LOG_LEVEL)",
)
@click.option("--health", "health_check", is_flag=True, help="Check server health and exit")
@click.option("--health-url", default="http://localhost:5000", help="Server URL for health check")
@click.pass_context
def main(
    ctx: click.Context,
    host: str,
    port: int,
    reload: bool,
    log_level: str | None,
    health_check: bool,
    health_url: str,
) -> None:
    """Chat Runtime - streaming chat server with approved tool calls."""
    # If a subcommand is invoked, let it handle everything
    if ctx.invoked_subcommand is not None:
        return

    if health_check:
        _do_health_check(health_url)
        return

    config = _load_config()
    level = (log_level or config.log_level).upper()
    _configure_logging(level)
    _run_http_server(host, port, reload, level)


@main.command("tools")
def list_tools() -> None:
    """List the tools registered at startup."""
    from .builtin_tools import register_builtin_tools
    from .tools import ToolRegistry

    config = _load_config()
    registry = ToolRegistry()
    if config.builtin_tools:
        register_builtin_tools(registry)

    if registry.count == 0:
        click.echo("No tools registered")
        return

    for definition in registry.list_tools():
        click.echo(f"{definition.name:<24} {definition.description}")


def _do_health_check(url: str) -> None:
    """Probe a running server's /health endpoint, exit 1 if it is down."""

    async def fetch() -> httpx.Response:
        async with httpx.AsyncClient(base_url=url, timeout=5.0) as client:
            return await client.get("/health")

    try:
        response = asyncio.run(fetch())
    except httpx.TransportError as e:
        click.echo(f"Cannot reach chat runtime at {url}: {e}", err=True)
        sys.exit(1)

    if response.status_code != 200:
        click.echo(f"Health check failed with HTTP {response.status_code}", err=True)
        sys.exit(1)

    data = response.json()
    click.echo(
        f"Chat runtime is {data.get('status', 'unknown')}: "
        f"{data.get('sessions', 0)} session(s), {data.get('tools', 0)} tool(s)"
    )


def _run_http_server(host: str, port: int, reload: bool, log_level: str) -> None:
    """Run the HTTP server."""
    import uvicorn

    click.echo(f"Starting chat runtime on http://{host}:{port}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "chat_runtime.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level.lower(),
    )


if __name__ == "__main__":
    main()
