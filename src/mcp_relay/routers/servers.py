"""Tool server status and lifecycle endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from mcp_relay.context import ToolContext
from mcp_relay.dependencies import get_tool_context
from mcp_relay.exceptions import ServerNotFoundError, ServerStartError
from mcp_relay.models.servers import ServerListResponse, ServerStatus
from mcp_relay.servers.types import ServerConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/servers", tags=["servers"])


def _server_status(context: ToolContext, config: ServerConfig) -> ServerStatus:
    handle = context.supervisor.get_handle(config.id)
    running = context.supervisor.is_running(config.id)
    client = context.registry.get_client(config.id)
    tools = context.registry.get_all_tools().get(config.id, [])

    return ServerStatus(
        id=config.id,
        name=config.name,
        command=config.command,
        args=list(config.args),
        transport=config.transport.value,
        capabilities=sorted(config.capabilities),
        running=running,
        connected=client is not None and client.is_connected,
        pid=handle.pid if handle is not None and running else None,
        container_name=handle.container_name if handle is not None else None,
        started_at=handle.started_at if handle is not None and running else None,
        tool_count=len(tools),
    )


def _not_found(server_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={
            "error": {
                "code": "server_not_found",
                "message": f"Tool server {server_id} is not configured",
                "details": {"server_id": server_id},
            }
        },
    )


@router.get("", response_model=ServerListResponse)
async def list_servers(
    context: ToolContext = Depends(get_tool_context),
) -> ServerListResponse:
    """List the configured tool servers with their runtime state."""
    return ServerListResponse(
        servers=[_server_status(context, config) for config in context.configs]
    )


@router.post("/reload", response_model=ServerListResponse)
async def reload_servers(
    context: ToolContext = Depends(get_tool_context),
) -> ServerListResponse:
    """Re-read the tool server config file.

    Running servers are not restarted; new entries can be started with
    POST /api/v1/servers/{server_id}/start.
    """
    configs = context.reload_configs()
    logger.info(f"Reloaded {len(configs)} tool server configs")
    return ServerListResponse(
        servers=[_server_status(context, config) for config in configs]
    )


@router.post("/{server_id}/start", response_model=ServerStatus)
async def start_server(
    server_id: str,
    context: ToolContext = Depends(get_tool_context),
) -> ServerStatus:
    """Start a configured tool server (no-op if it is already running).

    Raises:
        HTTPException: 404 if the server is not configured, 502 if it fails
                       to start
    """
    try:
        await context.start(server_id)
    except ServerNotFoundError:
        raise _not_found(server_id)
    except (ServerStartError, OSError) as e:
        logger.error(f"Failed to start tool server {server_id}: {e}")
        raise HTTPException(
            status_code=502,
            detail={
                "error": {
                    "code": "server_start_failed",
                    "message": f"Failed to start tool server {server_id}: {e}",
                    "details": {"server_id": server_id},
                }
            },
        )

    return _server_status(context, context.get_config(server_id))


@router.post("/{server_id}/stop", response_model=ServerStatus)
async def stop_server(
    server_id: str,
    context: ToolContext = Depends(get_tool_context),
) -> ServerStatus:
    """Stop a tool server (no-op if it is not running).

    Raises:
        HTTPException: 404 if the server is not configured
    """
    try:
        await context.stop(server_id)
    except ServerNotFoundError:
        raise _not_found(server_id)

    return _server_status(context, context.get_config(server_id))
