"""JSON-RPC 2.0 messages and the newline-delimited stdio channel.

One message per line in both directions. The channel writes requests to the
server's stdin and reads its stdout until the response carrying the matching
id arrives; log lines and notifications the server prints in between are
skipped.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

from mcp_relay.exceptions import JsonRpcError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request (or notification when id is None)."""

    method: str
    params: dict[str, Any] | None = None
    id: int | None = None

    def to_json(self) -> str:
        message: dict[str, Any] = {"jsonrpc": "2.0", "method": self.method}
        if self.params is not None:
            message["params"] = self.params
        if self.id is not None:
            message["id"] = self.id
        return json.dumps(message)


@dataclass
class JsonRpcResponse:
    """JSON-RPC 2.0 response."""

    id: int | str | None
    result: Any = None
    error: dict[str, Any] | None = None

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "JsonRpcResponse":
        error = message.get("error")
        return cls(
            id=message.get("id"),
            result=message.get("result"),
            error=error if isinstance(error, dict) else None,
        )

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def raise_for_error(self) -> None:
        """Raise JsonRpcError if the server answered with an error."""
        if self.error is not None:
            raise JsonRpcError(
                self.error.get("code"),
                str(self.error.get("message") or json.dumps(self.error)),
            )


class StdioChannel:
    """Request/response channel over a server process's stdin and stdout."""

    def __init__(
        self,
        server_id: str,
        process: asyncio.subprocess.Process,
    ) -> None:
        if process.stdin is None or process.stdout is None:
            raise TransportError(f"Server {server_id} has no stdio channel")
        self.server_id = server_id
        self.process = process
        self._request_id = 0
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        """Whether the process is alive and its stdout has not hit EOF."""
        return self.process.returncode is None and not self.process.stdout.at_eof()

    def next_id(self) -> int:
        """Generate the next request id."""
        self._request_id += 1
        return self._request_id

    async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send a request and return the result member of its response.

        Raises:
            TransportError: If the channel is closed or the server went away
            JsonRpcError: If the server answered with a JSON-RPC error
        """
        async with self._lock:
            request = JsonRpcRequest(method=method, params=params, id=self.next_id())
            await self._write(request)
            response = await self._read_response(request.id)

        response.raise_for_error()
        return response.result

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification; no response is expected."""
        async with self._lock:
            await self._write(JsonRpcRequest(method=method, params=params))

    async def _write(self, request: JsonRpcRequest) -> None:
        if not self.is_open:
            raise TransportError(f"Server {self.server_id} is not running")

        line = request.to_json() + "\n"
        logger.debug(f"[{self.server_id}] -> {line.strip()}")
        try:
            self.process.stdin.write(line.encode("utf-8"))
            await self.process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise TransportError(f"Server {self.server_id} closed its stdin: {e}") from e

    async def _read_response(self, request_id: int) -> JsonRpcResponse:
        while True:
            try:
                raw = await self.process.stdout.readline()
            except (ValueError, asyncio.LimitOverrunError) as e:
                raise TransportError(
                    f"Server {self.server_id} sent an oversized line: {e}"
                ) from e

            if not raw:
                raise TransportError(
                    f"Server {self.server_id} closed its output before responding"
                )

            line = raw.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            logger.debug(f"[{self.server_id}] <- {line}")

            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                logger.debug(f"[{self.server_id}] skipping non-JSON output line")
                continue

            if not isinstance(message, dict):
                continue
            if "method" in message and "id" not in message:
                # Server-side notification
                continue
            if message.get("id") != request_id:
                logger.debug(
                    f"[{self.server_id}] skipping message for id {message.get('id')}"
                )
                continue

            return JsonRpcResponse.from_message(message)
