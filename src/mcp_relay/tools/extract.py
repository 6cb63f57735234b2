"""Tool-call extraction from model output.

Models request tools in one of two ways:

- Textual directives embedded in the reply:
  ``tools/call <server> <tool> {json}`` (qualified) or
  ``tools/call <tool> {json}`` (unqualified).
- Structured ``tool_calls`` returned by the chat API:
  ``[{"id": ..., "function": {"name": ..., "arguments": ...}}]``.

Both are turned into ToolCallRequest objects. Extraction is total: malformed
directives and entries are dropped, never raised.
"""

import json
import logging
import re
from typing import Any

from mcp_relay.protocol.types import ToolCallRequest

logger = logging.getLogger(__name__)

INVOCATION_KEYWORD = "tools/call"

# Keyword, one or two name tokens, then the opening brace of the arguments.
# A qualified match consumes both tokens, so its span never yields a second,
# unqualified request.
_DIRECTIVE_PATTERN = re.compile(
    re.escape(INVOCATION_KEYWORD) + r"\s+([\w.-]+)(?:\s+([\w.-]+))?\s*(?=\{)"
)

_decoder = json.JSONDecoder()


def extract_tool_calls(text: str) -> list[ToolCallRequest]:
    """Extract textual tool-call directives from model output.

    Args:
        text: Model output to scan

    Returns:
        list[ToolCallRequest]: Requests in order of first occurrence
    """
    if not text or INVOCATION_KEYWORD not in text:
        return []

    requests: list[ToolCallRequest] = []
    position = 0

    while True:
        match = _DIRECTIVE_PATTERN.search(text, position)
        if match is None:
            break

        first, second = match.group(1), match.group(2)
        tool_name = f"{first}.{second}" if second else first

        try:
            arguments, end = _decoder.raw_decode(text, match.end())
        except json.JSONDecodeError as e:
            logger.debug(f"Dropping tools/call {tool_name}: invalid JSON ({e.msg})")
            position = match.start() + len(INVOCATION_KEYWORD)
            continue

        if not isinstance(arguments, dict):
            position = match.start() + len(INVOCATION_KEYWORD)
            continue

        requests.append(ToolCallRequest(tool_name=tool_name, arguments=arguments))
        position = end

    return requests


def from_structured_calls(tool_calls: list[Any] | None) -> list[ToolCallRequest]:
    """Convert structured model tool calls into requests.

    Arguments may be a JSON string or an already decoded mapping. Entries
    without a function name or with undecodable arguments are dropped.
    """
    requests: list[ToolCallRequest] = []

    for call in tool_calls or []:
        if not isinstance(call, dict):
            continue
        function = call.get("function")
        if not isinstance(function, dict) or not function.get("name"):
            logger.debug(f"Dropping structured tool call without a name: {call}")
            continue

        arguments = function.get("arguments") or {}
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except json.JSONDecodeError:
                logger.debug(
                    f"Dropping structured call to {function['name']}: invalid arguments"
                )
                continue
        if not isinstance(arguments, dict):
            continue

        call_id = call.get("id")
        requests.append(
            ToolCallRequest(
                tool_name=str(function["name"]),
                arguments=arguments,
                call_id=str(call_id) if call_id is not None else None,
            )
        )

    return requests


def format_tool_call(request: ToolCallRequest) -> str:
    """Render a request as a textual directive.

    ``server.tool`` names are written in the qualified form.
    """
    server, _, tool = request.tool_name.partition(".")
    arguments = json.dumps(request.arguments)
    if tool:
        return f"{INVOCATION_KEYWORD} {server} {tool} {arguments}"
    return f"{INVOCATION_KEYWORD} {request.tool_name} {arguments}"
