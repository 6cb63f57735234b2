"""Conversation round trips that execute model-requested tool calls."""

from mcp_relay.agents.round_trip import (
    AgentRoundTripController,
    RoundTripResult,
    RoundTripState,
)

__all__ = ["AgentRoundTripController", "RoundTripResult", "RoundTripState"]
