"""Chat API endpoints.

Each request runs one tool round trip: the model is asked, any tool calls it
makes are executed against the tool servers, and the model is asked again
with the results. The streaming endpoint reports progress via SSE.
"""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from mcp_relay.agents import AgentRoundTripController
from mcp_relay.agents.round_trip import EventCallback
from mcp_relay.config import McpRelaySettings
from mcp_relay.context import ToolContext
from mcp_relay.dependencies import get_app_settings, get_ollama_client, get_tool_context
from mcp_relay.models.chat import (
    ChatRequest,
    ChatResponse,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    StateEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from mcp_relay.ollama.client import OllamaClient
from mcp_relay.routers.tools import outcome_to_model

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])

_EVENT_MODELS: dict[str, type[BaseModel]] = {
    "state": StateEvent,
    "tool_call": ToolCallEvent,
    "tool_result": ToolResultEvent,
}


def _build_controller(
    request_body: ChatRequest,
    settings: McpRelaySettings,
    ollama_client: OllamaClient,
    context: ToolContext,
    on_event: EventCallback | None = None,
) -> AgentRoundTripController:
    return AgentRoundTripController(
        model_client=ollama_client,
        registry=context.registry,
        model=request_body.model or settings.model,
        options=request_body.options,
        native_tool_calls=settings.native_tool_calls,
        on_event=on_event,
    )


@router.post("", response_model=ChatResponse)
async def chat_non_streaming(
    request_body: ChatRequest,
    settings: McpRelaySettings = Depends(get_app_settings),
    ollama_client: OllamaClient = Depends(get_ollama_client),
    context: ToolContext = Depends(get_tool_context),
) -> ChatResponse:
    """Run one round trip and return the final answer.

    Raises:
        HTTPException: 502 if the model call fails
    """
    controller = _build_controller(request_body, settings, ollama_client, context)
    messages = [message.to_ollama() for message in request_body.messages]

    logger.info(f"Chat request with {len(messages)} messages, model {controller.model}")
    try:
        result = await controller.run(messages)
    except Exception as e:
        logger.error(f"Chat round trip failed: {e}")
        raise HTTPException(
            status_code=502,
            detail={
                "error": {
                    "code": "ollama_error",
                    "message": f"Failed to get response from Ollama: {str(e)}",
                    "details": {"state": controller.state.value},
                }
            },
        )

    return ChatResponse(
        content=result.content,
        model=controller.model,
        messages=result.messages,
        tool_outcomes=[outcome_to_model(outcome) for outcome in result.outcomes],
    )


@router.post("/stream")
async def chat_streaming(
    request_body: ChatRequest,
    settings: McpRelaySettings = Depends(get_app_settings),
    ollama_client: OllamaClient = Depends(get_ollama_client),
    context: ToolContext = Depends(get_tool_context),
) -> EventSourceResponse:
    """Run one round trip, reporting progress via Server-Sent Events (SSE).

    SSE Events:
        - state: The round trip changed state
        - tool_call: A tool call is about to run
        - tool_result: A tool call finished
        - content: The final assistant content
        - error: The model call failed
        - done: Stream is complete
    """
    messages = [message.to_ollama() for message in request_body.messages]
    queue: asyncio.Queue[tuple[str, dict[str, Any]] | None] = asyncio.Queue()

    async def on_event(name: str, payload: dict[str, Any]) -> None:
        await queue.put((name, payload))

    controller = _build_controller(
        request_body, settings, ollama_client, context, on_event=on_event
    )
    logger.info(
        f"Streaming chat request with {len(messages)} messages, model {controller.model}"
    )

    async def event_generator():
        """Relay controller events, then the final content."""
        task = asyncio.create_task(controller.run(messages))
        task.add_done_callback(lambda _: queue.put_nowait(None))

        try:
            while True:
                item = await queue.get()
                if item is None:
                    break
                name, payload = item
                yield {
                    "event": name,
                    "data": _EVENT_MODELS[name](**payload).model_dump_json(),
                }

            result = task.result()
            yield {
                "event": "content",
                "data": ContentEvent(
                    content=result.content, model=controller.model
                ).model_dump_json(),
            }
            yield {
                "event": "done",
                "data": DoneEvent(tool_calls=len(result.outcomes)).model_dump_json(),
            }

        except Exception as e:
            logger.error(f"Error during streaming chat: {e}")
            error_event = ErrorEvent(
                code="ollama_error",
                message=f"Failed to generate response: {str(e)}",
                details={"state": controller.state.value},
            )
            yield {
                "event": "error",
                "data": error_event.model_dump_json(),
            }
        finally:
            if not task.done():
                logger.warning("Client disconnected during streaming chat")
                task.cancel()

    return EventSourceResponse(event_generator())
