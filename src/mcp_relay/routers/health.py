"""Health check endpoint router."""

import logging

from fastapi import APIRouter, Request

from mcp_relay.models.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])


async def _ollama_status(request: Request) -> tuple[bool | None, str | None]:
    client = getattr(request.app.state, "ollama_client", None)
    if client is None:
        return None, None

    try:
        connected = await client.check_connection()
    except Exception as e:
        logger.warning(f"Ollama connectivity check failed: {e}")
        connected = False
    return connected, client.host


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Report the service version, Ollama reachability and running tool servers.

    Returns 200 even when Ollama is down; ollama_connected is None before the
    lifespan has created the client.
    """
    ollama_connected, ollama_host = await _ollama_status(request)

    context = getattr(request.app.state, "tool_context", None)
    running_servers = len(context.supervisor.list_running()) if context else 0
    logger.debug(
        f"Health: ollama={ollama_connected}, running servers={running_servers}"
    )

    return HealthResponse(
        status="ok",
        version="0.1.0",
        ollama_connected=ollama_connected,
        ollama_host=ollama_host,
        running_servers=running_servers,
    )
