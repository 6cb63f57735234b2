"""Data types for tool-server configuration and running server handles.

ServerConfig is the canonical, immutable record produced by the config store.
ServerHandle represents one running tool-server process and knows how to
verify its own liveness for the transport it was started with.
"""

import asyncio
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger(__name__)

CONTAINER_RUNTIMES = ("docker", "podman")
CONTAINER_NAME_PREFIX = "mcp-relay-"


class TransportKind(str, Enum):
    """How a tool server process is attached to the orchestrator."""

    STDIO = "stdio"
    DETACHED = "detached"
    CONTAINER = "container"

    @property
    def has_channel(self) -> bool:
        """Whether stdin/stdout of the process carry the tool protocol."""
        return self is not TransportKind.DETACHED


def container_name_for(server_id: str) -> str:
    """Build the deterministic container name used for a server id."""
    safe_id = re.sub(r"[^a-zA-Z0-9_.-]", "-", server_id)
    return f"{CONTAINER_NAME_PREFIX}{safe_id}"


@dataclass(frozen=True)
class ServerConfig:
    """Configuration of a single tool server.

    Attributes:
        id: Unique server identifier (the key in the config file)
        name: Human-readable name, defaults to the id
        command: Executable to launch
        args: Command-line arguments
        env: Extra environment variables for the process
        working_dir: Working directory, None to inherit the orchestrator's
        capabilities: Free-form capability tags declared in the config
        transport: How the process is attached (resolved at load time)
    """

    id: str
    name: str
    command: str
    args: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    working_dir: str | None = None
    capabilities: frozenset[str] = frozenset()
    transport: TransportKind = TransportKind.STDIO


@dataclass
class ServerHandle:
    """A running tool-server process owned by the supervisor."""

    id: str
    transport: TransportKind
    process: asyncio.subprocess.Process
    started_at: datetime
    container_name: str | None = None
    # Runtime executable exactly as configured, used for ps/stop/rm
    runtime: str | None = None
    stdout_log: Path | None = None
    stderr_log: Path | None = None

    @property
    def pid(self) -> int:
        """Platform process id of the spawned process."""
        return self.process.pid

    @property
    def process_identifier(self) -> str:
        """PID for plain processes, container name for container servers."""
        if self.transport is TransportKind.CONTAINER and self.container_name:
            return self.container_name
        return str(self.pid)

    def process_exited(self) -> bool:
        """Return True once the spawned process has been reaped."""
        return self.process.returncode is not None

    async def check_alive(self) -> bool:
        """Verify that the underlying server is still running.

        Plain processes are probed with signal 0. Container servers ask the
        container runtime for a running container with the handle's name.
        """
        if self.transport is TransportKind.CONTAINER:
            return await self._container_running()
        return self.process_alive()

    def process_alive(self) -> bool:
        """Signal-0 probe of the spawned process; a synchronous liveness hint."""
        if self.process_exited():
            return False
        try:
            os.kill(self.pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            # The process exists but belongs to someone else
            return True
        return True

    async def _container_running(self) -> bool:
        if not self.container_name or not self.runtime:
            return self.process_alive()

        try:
            proc = await asyncio.create_subprocess_exec(
                self.runtime,
                "ps",
                "--quiet",
                "--filter",
                f"name=^/?{self.container_name}$",
                "--filter",
                "status=running",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
            stdout, _ = await proc.communicate()
        except OSError as e:
            logger.warning(f"Could not query {self.runtime} for {self.container_name}: {e}")
            return False

        return proc.returncode == 0 and bool(stdout.strip())
