"""FastAPI application factory.

create_app() wires the routers and middleware; the lifespan owns the two
long-lived objects of a running service, the Ollama client and the
ToolContext with its tool-server processes.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mcp_relay.config import McpRelaySettings
from mcp_relay.context import ToolContext
from mcp_relay.ollama import OllamaClient
from mcp_relay.routers import chat, health, servers, tools

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the Ollama client and the tool servers, stop them on exit.

    An unreachable Ollama only logs a warning. Tool servers that fail to
    start are skipped by ToolContext.bootstrap(); the app still serves the
    remaining ones.
    """
    settings: McpRelaySettings = app.state.settings

    ollama_client = OllamaClient(host=settings.ollama_host)
    if not await ollama_client.check_connection():
        logger.warning(
            f"Ollama is not reachable at {settings.ollama_host}; "
            "chat requests will fail until it is"
        )
    app.state.ollama_client = ollama_client

    tool_context = ToolContext(settings)
    app.state.tool_context = tool_context
    started = await tool_context.bootstrap()
    logger.info(
        f"mcp-relay ready with {len(started)} tool servers: {', '.join(started) or '-'}"
    )

    try:
        yield
    finally:
        await tool_context.shutdown()
        await ollama_client.close()
        logger.info("mcp-relay stopped")


def create_app(settings: McpRelaySettings | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Explicit settings, mainly for tests. Loaded from the
                  environment when omitted.

    Returns:
        FastAPI: The configured application; nothing is started until the
                 lifespan runs.
    """
    if settings is None:
        from mcp_relay.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="mcp-relay",
        description="Tool-server orchestration for local Ollama models",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router_module in (health, servers, tools, chat):
        app.include_router(router_module.router)

    return app
