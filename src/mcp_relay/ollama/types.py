"""Type definitions for Ollama integration.

This module contains the dataclass that represents one complete, non-streamed
model reply.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ChatCompletion:
    """A complete assistant reply assembled from streaming chunks.

    Attributes:
        content: Concatenated assistant text
        tool_calls: Structured tool calls in Ollama format
                    ([{"function": {"name": ..., "arguments": {...}}}, ...])
        model: Name of the model that produced the reply
        eval_count: Number of generated tokens (final chunk only)
        prompt_eval_count: Number of prompt tokens (final chunk only)
    """

    content: str
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    model: str = ""
    eval_count: int | None = None
    prompt_eval_count: int | None = None

    def to_message(self) -> dict[str, Any]:
        """Return the reply as an assistant message in Ollama format."""
        message: dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = self.tool_calls
        return message
