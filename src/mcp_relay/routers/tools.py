"""Tool listing and direct tool call endpoints."""

import logging

from fastapi import APIRouter, Depends, Query

from mcp_relay.context import ToolContext
from mcp_relay.dependencies import get_tool_context
from mcp_relay.models.tools import (
    ServerTools,
    ToolCallBody,
    ToolInfo,
    ToolListResponse,
    ToolOutcome,
)
from mcp_relay.protocol.types import ToolCallOutcome, ToolCallSuccess

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


def outcome_to_model(outcome: ToolCallOutcome) -> ToolOutcome:
    """Convert a tool call outcome to its API representation."""
    return ToolOutcome(
        tool_name=outcome.tool_name,
        server_id=outcome.server_id,
        status=outcome.status,
        text=outcome.text,
        content=outcome.result if isinstance(outcome, ToolCallSuccess) else [],
    )


@router.get("", response_model=ToolListResponse)
async def list_tools(
    refresh: bool = Query(default=False, description="Re-query every server"),
    context: ToolContext = Depends(get_tool_context),
) -> ToolListResponse:
    """List the tools of every connected server."""
    if refresh:
        await context.registry.refresh()

    servers = [
        ServerTools(
            server_id=server_id,
            tools=[
                ToolInfo(
                    name=tool.name,
                    qualified_name=f"{server_id}.{tool.name}",
                    description=tool.description,
                    input_schema=tool.input_schema,
                )
                for tool in tools
            ],
        )
        for server_id, tools in context.registry.get_all_tools().items()
    ]

    ambiguous = {}
    for server_tools in servers:
        for tool in server_tools.tools:
            owners = context.registry.owners(tool.name)
            if len(owners) > 1:
                ambiguous[tool.name] = owners

    return ToolListResponse(servers=servers, ambiguous=ambiguous)


@router.post("/call", response_model=ToolOutcome)
async def call_tool(
    body: ToolCallBody,
    context: ToolContext = Depends(get_tool_context),
) -> ToolOutcome:
    """Call a tool directly, bypassing the model.

    Failures are returned as an outcome with status "error", not as an HTTP
    error.
    """
    outcome = await context.registry.call_tool(body.tool, body.arguments)
    logger.info(f"Direct call to {body.tool}: {outcome.status}")
    return outcome_to_model(outcome)
