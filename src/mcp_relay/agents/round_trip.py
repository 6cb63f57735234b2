"""Two-phase conversational round trip with tool execution.

The controller asks the model once, executes any tool calls the reply asks
for, feeds every outcome back in a single user message and asks the model
again. Tool failures are reported inline to the model; only model-call
errors propagate to the caller.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from mcp_relay.ollama.types import ChatCompletion
from mcp_relay.protocol.types import (
    ToolCallFailure,
    ToolCallOutcome,
    ToolCallRequest,
    ToolCallSuccess,
)
from mcp_relay.tools.extract import extract_tool_calls, from_structured_calls
from mcp_relay.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

EventCallback = Callable[[str, dict[str, Any]], Awaitable[None]]


class ModelClient(Protocol):
    async def chat(
        self,
        model: str,
        messages: list[dict[str, Any]],
        options: dict[str, Any] | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> ChatCompletion: ...


class RoundTripState(str, Enum):
    """Progress of a single round trip."""

    IDLE = "idle"
    AWAITING_FIRST_COMPLETION = "awaiting_first_completion"
    EXTRACTING_CALLS = "extracting_calls"
    EXECUTING_TOOLS = "executing_tools"
    AWAITING_FOLLOWUP_COMPLETION = "awaiting_followup_completion"
    DONE = "done"


@dataclass
class RoundTripResult:
    """Result of a completed round trip.

    Attributes:
        content: Final assistant content
        messages: The input conversation plus every message the round trip
                  appended (assistant replies and the tool results message)
        outcomes: One outcome per executed tool call, in execution order
        final_state: State the controller finished in
    """

    content: str
    messages: list[dict[str, Any]] = field(default_factory=list)
    outcomes: list[ToolCallOutcome] = field(default_factory=list)
    final_state: RoundTripState = RoundTripState.DONE


def format_outcomes(outcomes: list[ToolCallOutcome]) -> str:
    """Format tool outcomes as the body of the follow-up user message."""
    sections = ["Tool results:"]
    for outcome in outcomes:
        if isinstance(outcome, ToolCallSuccess):
            label = f"{outcome.server_id}.{outcome.tool_name}"
        else:
            label = outcome.tool_name
        sections.append(f"[{label}]\n{outcome.text}")
    return "\n\n".join(sections)


class AgentRoundTripController:
    """Drives one ask-execute-ask cycle against the model.

    A controller instance handles one turn at a time; the HTTP layer creates
    one per request.
    """

    def __init__(
        self,
        model_client: ModelClient,
        registry: ToolRegistry,
        model: str,
        options: dict[str, Any] | None = None,
        native_tool_calls: bool = True,
        tool_prompt: bool = True,
        on_event: EventCallback | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            model_client: Client exposing chat(model, messages, options, tools)
            registry: Initialized tool registry used for routing calls
            model: Model name
            options: Optional model parameters
            native_tool_calls: Offer the registry's tools to the model's
                               structured tool-calling API
            tool_prompt: Prepend a system message describing the textual
                         tools/call syntax and the available tools
            on_event: Optional async callback receiving state, tool_call and
                      tool_result events
        """
        self.model_client = model_client
        self.registry = registry
        self.model = model
        self.options = options
        self.native_tool_calls = native_tool_calls
        self.tool_prompt = tool_prompt
        self.on_event = on_event
        self.state = RoundTripState.IDLE

    async def run(self, messages: list[dict[str, Any]]) -> RoundTripResult:
        """Run one round trip.

        Args:
            messages: Conversation in Ollama message format; not mutated

        Returns:
            RoundTripResult: Final content, augmented messages and outcomes

        Raises:
            Exception: Whatever the model client raises
        """
        conversation = [dict(message) for message in messages]
        tools = (
            self.registry.to_ollama_tools()
            if self.native_tool_calls and self.registry.has_tools()
            else None
        )

        await self._set_state(RoundTripState.AWAITING_FIRST_COMPLETION)
        first = await self._complete(conversation, tools)

        await self._set_state(RoundTripState.EXTRACTING_CALLS)
        requests = from_structured_calls(first.tool_calls)
        if not requests:
            requests = extract_tool_calls(first.content)

        conversation.append(first.to_message())

        if not requests:
            logger.debug("No tool calls in the model reply")
            await self._set_state(RoundTripState.DONE)
            return RoundTripResult(
                content=first.content,
                messages=conversation,
                final_state=self.state,
            )

        logger.info(f"Executing {len(requests)} tool calls")
        await self._set_state(RoundTripState.EXECUTING_TOOLS)
        outcomes = []
        for request in requests:
            outcomes.append(await self._execute(request))

        conversation.append({"role": "user", "content": format_outcomes(outcomes)})

        await self._set_state(RoundTripState.AWAITING_FOLLOWUP_COMPLETION)
        followup = await self._complete(conversation, tools)
        conversation.append(followup.to_message())

        await self._set_state(RoundTripState.DONE)
        return RoundTripResult(
            content=followup.content,
            messages=conversation,
            outcomes=outcomes,
            final_state=self.state,
        )

    async def _complete(
        self,
        conversation: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
    ) -> ChatCompletion:
        request_messages = list(conversation)
        if self.tool_prompt:
            description = self.registry.describe_tools()
            if description:
                request_messages = [
                    {"role": "system", "content": description},
                    *conversation,
                ]

        return await self.model_client.chat(
            model=self.model,
            messages=request_messages,
            options=self.options,
            tools=tools,
        )

    async def _execute(self, request: ToolCallRequest) -> ToolCallOutcome:
        await self._emit(
            "tool_call",
            {
                "tool_name": request.tool_name,
                "arguments": request.arguments,
                "call_id": request.call_id,
            },
        )

        outcome = await self.registry.call_tool(request.tool_name, request.arguments)

        if isinstance(outcome, ToolCallFailure):
            logger.warning(f"Tool call {request.tool_name} failed: {outcome.reason}")
        await self._emit(
            "tool_result",
            {
                "tool_name": outcome.tool_name,
                "server_id": outcome.server_id,
                "status": outcome.status,
                "text": outcome.text,
            },
        )
        return outcome

    async def _set_state(self, state: RoundTripState) -> None:
        logger.debug(f"Round trip: {self.state.value} -> {state.value}")
        self.state = state
        await self._emit("state", {"state": state.value})

    async def _emit(self, event: str, payload: dict[str, Any]) -> None:
        if self.on_event is not None:
            await self.on_event(event, payload)
