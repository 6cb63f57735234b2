"""Unit tests for AgentRoundTripController."""

from unittest.mock import AsyncMock

import pytest

from mcp_relay.agents import AgentRoundTripController, RoundTripState
from mcp_relay.ollama.types import ChatCompletion
from mcp_relay.protocol.types import ToolCallFailure, ToolCallSuccess
from mcp_relay.tools.registry import ToolRegistry


def make_registry(outcomes=None, tools=("filesystem.ls",)):
    """Create a registry mock whose call_tool returns scripted outcomes."""
    registry = AsyncMock(spec=ToolRegistry)
    registry.has_tools.return_value = bool(tools)
    registry.to_ollama_tools.return_value = [
        {"type": "function", "function": {"name": name.replace(".", "__")}} for name in tools
    ]
    registry.describe_tools.return_value = "TOOLS" if tools else ""

    async def call_tool(tool_name, arguments):
        if outcomes and tool_name in outcomes:
            return outcomes[tool_name]
        return ToolCallSuccess(
            tool_name=tool_name.split(".")[-1],
            server_id="filesystem",
            result=[{"type": "text", "text": "a.txt\nb.txt"}],
        )

    registry.call_tool.side_effect = call_tool
    return registry


def make_model(*completions):
    model = AsyncMock()
    model.chat.side_effect = list(completions)
    return model


@pytest.mark.asyncio
async def test_end_to_end_text_directive():
    """Test the list-files scenario: one tool call, one follow-up completion."""
    model = make_model(
        ChatCompletion(content='I will look. tools/call filesystem ls {"path":"/tmp"}'),
        ChatCompletion(content="There are two files: a.txt and b.txt."),
    )
    registry = make_registry()
    controller = AgentRoundTripController(model, registry, model="llama3.2:latest")

    messages = [{"role": "user", "content": "list files in /tmp"}]
    result = await controller.run(messages)

    assert result.content == "There are two files: a.txt and b.txt."
    assert result.final_state is RoundTripState.DONE
    registry.call_tool.assert_awaited_once_with("filesystem.ls", {"path": "/tmp"})
    assert model.chat.await_count == 2

    followup_messages = model.chat.await_args_list[1].kwargs["messages"]
    tool_message = followup_messages[-1]
    assert tool_message["role"] == "user"
    assert "a.txt\nb.txt" in tool_message["content"]
    assert followup_messages[-2]["role"] == "assistant"

    assert [m["role"] for m in result.messages] == ["user", "assistant", "user", "assistant"]
    assert messages == [{"role": "user", "content": "list files in /tmp"}]
    assert len(result.outcomes) == 1


@pytest.mark.asyncio
async def test_no_tool_calls_returns_first_content():
    model = make_model(ChatCompletion(content="Paris."))
    controller = AgentRoundTripController(model, make_registry(), model="m")

    result = await controller.run([{"role": "user", "content": "Capital of France?"}])

    assert result.content == "Paris."
    assert result.outcomes == []
    assert result.final_state is RoundTripState.DONE
    assert model.chat.await_count == 1


@pytest.mark.asyncio
async def test_structured_calls_preferred_over_text():
    """Test that native tool calls win and text directives are ignored."""
    model = make_model(
        ChatCompletion(
            content='tools/call other thing {"x": 1}',
            tool_calls=[
                {"id": "c1", "function": {"name": "filesystem__ls", "arguments": {"path": "/"}}}
            ],
        ),
        ChatCompletion(content="done"),
    )
    registry = make_registry()
    controller = AgentRoundTripController(model, registry, model="m")

    result = await controller.run([{"role": "user", "content": "ls"}])

    registry.call_tool.assert_awaited_once_with("filesystem__ls", {"path": "/"})
    assert result.messages[1]["tool_calls"][0]["id"] == "c1"


@pytest.mark.asyncio
async def test_native_tools_offered_when_enabled():
    model = make_model(ChatCompletion(content="hi"))
    registry = make_registry()
    controller = AgentRoundTripController(model, registry, model="m", native_tool_calls=True)

    await controller.run([{"role": "user", "content": "hi"}])

    kwargs = model.chat.await_args.kwargs
    assert kwargs["tools"] == [{"type": "function", "function": {"name": "filesystem__ls"}}]
    assert kwargs["messages"][0] == {"role": "system", "content": "TOOLS"}


@pytest.mark.asyncio
async def test_native_tools_not_offered_when_disabled():
    model = make_model(ChatCompletion(content="hi"))
    controller = AgentRoundTripController(
        model, make_registry(), model="m", native_tool_calls=False, tool_prompt=False
    )

    await controller.run([{"role": "user", "content": "hi"}])

    kwargs = model.chat.await_args.kwargs
    assert kwargs["tools"] is None
    assert kwargs["messages"] == [{"role": "user", "content": "hi"}]


@pytest.mark.asyncio
async def test_tool_calls_execute_sequentially_in_order():
    order = []
    registry = make_registry()

    async def call_tool(tool_name, arguments):
        order.append(tool_name)
        return ToolCallSuccess(tool_name=tool_name, server_id="s", result=[])

    registry.call_tool.side_effect = call_tool
    model = make_model(
        ChatCompletion(content='tools/call a {"n": 1}\ntools/call s b {"n": 2}\ntools/call c {}'),
        ChatCompletion(content="ok"),
    )
    controller = AgentRoundTripController(model, registry, model="m")

    result = await controller.run([{"role": "user", "content": "go"}])

    assert order == ["a", "s.b", "c"]
    assert len(result.outcomes) == 3
    assert model.chat.await_count == 2


@pytest.mark.asyncio
async def test_tool_failure_is_reported_to_model():
    """Test that failures are formatted inline instead of raised."""
    failure = ToolCallFailure(tool_name="ls", reason="server filesystem is not running")
    model = make_model(
        ChatCompletion(content='tools/call ls {"path": "/tmp"}'),
        ChatCompletion(content="Sorry, the filesystem is unavailable."),
    )
    controller = AgentRoundTripController(model, make_registry({"ls": failure}), model="m")

    result = await controller.run([{"role": "user", "content": "list files"}])

    assert result.content == "Sorry, the filesystem is unavailable."
    followup = model.chat.await_args_list[1].kwargs["messages"][-1]["content"]
    assert "tool call failed: server filesystem is not running" in followup


@pytest.mark.asyncio
async def test_model_error_propagates():
    model = AsyncMock()
    model.chat.side_effect = ConnectionError("ollama down")
    controller = AgentRoundTripController(model, make_registry(), model="m")

    with pytest.raises(ConnectionError):
        await controller.run([{"role": "user", "content": "hi"}])

    assert controller.state is RoundTripState.AWAITING_FIRST_COMPLETION


@pytest.mark.asyncio
async def test_events_are_emitted():
    events = []

    async def on_event(name, payload):
        events.append((name, payload))

    model = make_model(
        ChatCompletion(content='tools/call filesystem ls {"path": "/tmp"}'),
        ChatCompletion(content="done"),
    )
    controller = AgentRoundTripController(
        model, make_registry(), model="m", on_event=on_event
    )

    await controller.run([{"role": "user", "content": "ls"}])

    states = [payload["state"] for name, payload in events if name == "state"]
    assert states == [
        "awaiting_first_completion",
        "extracting_calls",
        "executing_tools",
        "awaiting_followup_completion",
        "done",
    ]
    tool_events = [(name, payload) for name, payload in events if name != "state"]
    assert tool_events[0] == (
        "tool_call",
        {"tool_name": "filesystem.ls", "arguments": {"path": "/tmp"}, "call_id": None},
    )
    assert tool_events[1][0] == "tool_result"
    assert tool_events[1][1]["status"] == "success"
    assert tool_events[1][1]["text"] == "a.txt\nb.txt"
