"""Async Ollama client wrapper.

This module provides an async wrapper around the ollama.AsyncClient for
communicating with the Ollama API. The client is created once at startup and
reused; the round-trip controller only needs its chat() method.
"""

import logging
from typing import Any, AsyncIterator

import ollama

from mcp_relay.ollama.types import ChatCompletion

logger = logging.getLogger(__name__)


class OllamaClient:
    """Async client for interacting with Ollama API.

    This client wraps ollama.AsyncClient. All chat operations use streaming;
    chat() collects the stream into a single ChatCompletion.

    Attributes:
        host: The Ollama server URL (e.g., "http://localhost:11434")
        _client: The underlying ollama.AsyncClient instance
    """

    def __init__(self, host: str) -> None:
        """Initialize the Ollama client.

        Args:
            host: The Ollama server URL
        """
        self.host = host
        self._client = ollama.AsyncClient(host=host)
        logger.info(f"OllamaClient initialized with host: {host}")

    async def check_connection(self) -> bool:
        """Check if the Ollama server is reachable.

        Returns:
            bool: True if connection is successful, False otherwise
        """
        try:
            await self._client.list()
            logger.debug("Ollama connection check: successful")
            return True
        except Exception as e:
            logger.warning(f"Ollama connection check failed: {e}")
            return False

    async def chat_stream(
        self,
        model: str,
        messages: list[dict[str, Any]],
        options: dict[str, Any] | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream chat responses from Ollama.

        Args:
            model: The model name to use for the chat
            messages: List of message dicts in Ollama format:
                      [{"role": "user", "content": "..."}, ...]
            options: Optional model parameters (temperature, etc.)
            tools: Optional function tools for native tool calling

        Yields:
            dict: Response chunks from Ollama. Each chunk contains:
                  - model: str - The model name
                  - message: dict - Contains role, content and tool_calls
                  - done: bool - True on the final chunk
                  - (final chunk includes eval_count, prompt_eval_count, etc.)

        Raises:
            Exception: If the Ollama API request fails
        """
        try:
            logger.debug(
                f"Starting chat stream with model: {model} "
                f"({len(messages)} messages, {len(tools or [])} tools)"
            )

            async for chunk in await self._client.chat(
                model=model,
                messages=messages,
                tools=tools or None,
                stream=True,
                options=options,
            ):
                if hasattr(chunk, "model_dump"):
                    chunk_dict = chunk.model_dump()
                elif isinstance(chunk, dict):
                    chunk_dict = chunk
                else:
                    chunk_dict = vars(chunk)

                yield chunk_dict

            logger.debug("Chat stream completed")

        except Exception as e:
            logger.error(f"Chat stream failed: {e}")
            raise

    async def chat(
        self,
        model: str,
        messages: list[dict[str, Any]],
        options: dict[str, Any] | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> ChatCompletion:
        """Run one chat request and collect the complete reply.

        Content is concatenated across chunks; tool calls are gathered from
        whichever chunks carry them.

        Returns:
            ChatCompletion: The assembled reply

        Raises:
            Exception: If the Ollama API request fails
        """
        content_parts: list[str] = []
        tool_calls: list[dict[str, Any]] = []
        final_chunk: dict[str, Any] = {}

        async for chunk in self.chat_stream(
            model=model, messages=messages, options=options, tools=tools
        ):
            message = chunk.get("message") or {}
            if message.get("content"):
                content_parts.append(message["content"])
            for call in message.get("tool_calls") or []:
                tool_calls.append(_tool_call_to_dict(call))
            if chunk.get("done"):
                final_chunk = chunk

        completion = ChatCompletion(
            content="".join(content_parts),
            tool_calls=tool_calls,
            model=final_chunk.get("model") or model,
            eval_count=final_chunk.get("eval_count"),
            prompt_eval_count=final_chunk.get("prompt_eval_count"),
        )
        logger.info(
            f"Received {len(completion.content)} characters and "
            f"{len(tool_calls)} tool calls from {completion.model}"
        )
        return completion

    async def close(self) -> None:
        """Close the client and clean up resources.

        ollama.AsyncClient uses httpx internally which handles cleanup.
        """
        logger.debug("OllamaClient closed")


def _tool_call_to_dict(call: Any) -> dict[str, Any]:
    if hasattr(call, "model_dump"):
        return call.model_dump()
    return dict(call)
