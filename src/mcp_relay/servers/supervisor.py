"""Lifecycle management for tool-server subprocesses.

The ToolServerSupervisor spawns tool servers, keeps exactly one ServerHandle
per server id, removes handles when their process exits, and stops servers
with a SIGTERM -> SIGKILL escalation (plus runtime stop/rm for containers).

Startup is acknowledged with a bounded-wait heuristic: the first byte the
server writes to stderr (or to its log files, for detached servers) counts as
"started", an early exit counts as a failure, and if neither happens within
``startup_timeout`` seconds the server is optimistically assumed to be up.
The protocol offers no readiness signal over stdio, so this is a heuristic
rather than a handshake.
"""

import asyncio
import logging
import os
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterable, Mapping

from mcp_relay.exceptions import ServerStartError
from mcp_relay.servers.types import (
    ServerConfig,
    ServerHandle,
    TransportKind,
    container_name_for,
)

logger = logging.getLogger(__name__)

DEFAULT_STARTUP_TIMEOUT = 5.0
DEFAULT_STOP_GRACE_PERIOD = 2.5
LOG_POLL_INTERVAL = 0.1
STDERR_TAIL_LINES = 20
# An exit within this window after the first output still fails the startup
STARTUP_SETTLE_PERIOD = 0.3
# Largest JSON-RPC line a piped server may send in one message
STREAM_LIMIT = 16 * 1024 * 1024

SERVER_LOG_LEVELS = ("quiet", "info", "debug")


def build_server_env(
    declared_env: Mapping[str, str], log_level: str = "quiet"
) -> dict[str, str]:
    """Build the environment for a spawned tool server.

    The orchestrator's environment is inherited, the verbosity variables
    derived from ``log_level`` are added, and the server's declared env is
    applied last so it can override them.

    Args:
        declared_env: Environment declared for the server in its config
        log_level: One of "quiet", "info" or "debug"

    Returns:
        The complete environment mapping for the child process
    """
    if log_level not in SERVER_LOG_LEVELS:
        raise ValueError(
            f"Unknown server log level '{log_level}', expected one of {SERVER_LOG_LEVELS}"
        )

    env = dict(os.environ)
    env.update(
        {
            "MCP_LOG_LEVEL": {"quiet": "error", "info": "info", "debug": "debug"}[
                log_level
            ],
            "DEBUG": "1" if log_level == "debug" else "0",
            "QUIET": "1" if log_level == "quiet" else "0",
            "NODE_ENV": "development" if log_level == "debug" else "production",
        }
    )
    env.update(declared_env)
    return env


def with_container_name(args: Iterable[str], name: str) -> tuple[list[str], str | None]:
    """Inject ``--name <name>`` into a ``<runtime> run ...`` argument list.

    Returns the new argument list and the container name that identifies the
    server. If the args already name the container, that name is kept. If
    there is no ``run`` sub-command the container cannot be identified and
    None is returned as the name.
    """
    args = list(args)
    if "run" not in args:
        return args, None

    for index, arg in enumerate(args):
        if arg == "--name" and index + 1 < len(args):
            return args, args[index + 1]
        if arg.startswith("--name="):
            return args, arg.split("=", 1)[1]

    run_index = args.index("run")
    return args[: run_index + 1] + ["--name", name] + args[run_index + 1 :], name


class _StderrRelay:
    """Drains a piped stderr stream into a log file or the logging system."""

    def __init__(
        self,
        server_id: str,
        stream: asyncio.StreamReader,
        log_path: Path | None,
    ) -> None:
        self.server_id = server_id
        self.stream = stream
        self.log_path = log_path
        self.first_output = asyncio.Event()
        self.tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._server_logger = logging.getLogger(f"mcp_relay.servers.{server_id}")
        self._pending = ""
        self.task = asyncio.create_task(self._run(), name=f"stderr-relay-{server_id}")

    async def _run(self) -> None:
        log_file = (
            await asyncio.to_thread(open, self.log_path, "ab") if self.log_path else None
        )
        try:
            while True:
                chunk = await self.stream.read(4096)
                if not chunk:
                    break
                self.first_output.set()
                if log_file is not None:
                    # Disk writes stay off the event loop
                    await asyncio.to_thread(_append, log_file, chunk)
                self._consume(chunk.decode("utf-8", errors="replace"))
        finally:
            if self._pending:
                self._emit(self._pending)
                self._pending = ""
            if log_file is not None:
                log_file.close()

    def _consume(self, text: str) -> None:
        lines = (self._pending + text).split("\n")
        self._pending = lines.pop()
        for line in lines:
            self._emit(line)

    def _emit(self, line: str) -> None:
        line = line.rstrip("\r")
        if not line:
            return
        self.tail.append(line)
        if self.log_path is None:
            self._server_logger.info(line)


class ToolServerSupervisor:
    """Spawns, tracks and terminates tool-server processes.

    The server-id -> handle map is the only shared state; it is mutated only
    from the event loop and each entry is keyed by its own id, so concurrent
    startups of different servers need no extra coordination.

    Attributes:
        logs_dir: Directory for per-server stdout/stderr log files
        log_level: Verbosity token passed to servers ("quiet", "info", "debug")
        interactive_logs: Relay server stderr through logging instead of files
        startup_timeout: Seconds to wait for a startup acknowledgement
        stop_grace_period: Seconds between SIGTERM and SIGKILL
    """

    def __init__(
        self,
        logs_dir: Path,
        log_level: str = "quiet",
        interactive_logs: bool = False,
        startup_timeout: float = DEFAULT_STARTUP_TIMEOUT,
        stop_grace_period: float = DEFAULT_STOP_GRACE_PERIOD,
    ) -> None:
        if log_level not in SERVER_LOG_LEVELS:
            raise ValueError(
                f"Unknown server log level '{log_level}', expected one of {SERVER_LOG_LEVELS}"
            )
        self.logs_dir = logs_dir
        self.log_level = log_level
        self.interactive_logs = interactive_logs
        self.startup_timeout = startup_timeout
        self.stop_grace_period = stop_grace_period

        self._handles: dict[str, ServerHandle] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._relays: dict[str, _StderrRelay] = {}
        self._watchers: dict[str, asyncio.Task] = {}
        self._log_offsets: dict[str, dict[Path, int]] = {}

    # --- Queries ---

    def is_running(self, server_id: str) -> bool:
        """Whether a live handle is tracked for the server.

        This is a hint: the process may die right after the check, so callers
        must still handle transport failures.
        """
        handle = self._handles.get(server_id)
        return handle is not None and handle.process_alive()

    def list_running(self) -> set[str]:
        """Ids of all servers with a live tracked process."""
        return {
            server_id
            for server_id, handle in self._handles.items()
            if handle.process_alive()
        }

    def get_handle(self, server_id: str) -> ServerHandle | None:
        """Return the tracked handle for a server, if any."""
        return self._handles.get(server_id)

    # --- Start ---

    async def start_server(self, config: ServerConfig) -> ServerHandle:
        """Start a tool server, or return its handle if it is already running.

        Args:
            config: Configuration of the server to start

        Returns:
            ServerHandle: The handle of the running server

        Raises:
            OSError: If the process could not be spawned
            ServerStartError: If the process exited before acknowledging startup
        """
        async with self._lock_for(config.id):
            existing = self._handles.get(config.id)
            if existing is not None:
                if await existing.check_alive():
                    logger.debug(f"Tool server {config.id} is already running")
                    return existing
                logger.info(f"Discarding stale handle for tool server {config.id}")
                await self._discard(existing)

            handle = await self._spawn(config)
            self._handles[config.id] = handle
            self._watchers[config.id] = asyncio.create_task(
                self._watch_exit(handle), name=f"exit-watcher-{config.id}"
            )

            try:
                await self._await_startup(handle)
            except ServerStartError:
                if self._handles.get(config.id) is handle:
                    del self._handles[config.id]
                await self._discard(handle)
                raise

            logger.info(
                f"Started tool server {config.id} "
                f"({handle.transport.value}, {handle.process_identifier})"
            )
            return handle

    async def start_all(
        self, configs: Iterable[ServerConfig]
    ) -> dict[str, ServerHandle | BaseException]:
        """Start several servers concurrently.

        Failures are isolated per server: the returned mapping holds either
        the handle or the exception raised while starting that server.
        """
        configs = list(configs)
        results = await asyncio.gather(
            *(self.start_server(config) for config in configs),
            return_exceptions=True,
        )

        outcome: dict[str, ServerHandle | BaseException] = {}
        for config, result in zip(configs, results):
            if isinstance(result, BaseException):
                logger.error(f"Failed to start tool server {config.id}: {result}")
            outcome[config.id] = result
        return outcome

    async def _spawn(self, config: ServerConfig) -> ServerHandle:
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        stdout_log = self.logs_dir / f"{config.id}.out.log"
        stderr_log = self.logs_dir / f"{config.id}.err.log"

        env = build_server_env(config.env, self.log_level)
        args = list(config.args)
        container_name = None
        if config.transport is TransportKind.CONTAINER:
            args, container_name = with_container_name(
                args, container_name_for(config.id)
            )
            if container_name is None:
                logger.warning(
                    f"Container server {config.id} has no 'run' sub-command; "
                    "liveness falls back to the runtime CLI process"
                )

        logger.info(f"Starting tool server {config.id}: {config.command} {' '.join(args)}")

        if config.transport is TransportKind.DETACHED:
            self._log_offsets[config.id] = {
                path: _file_size(path) for path in (stdout_log, stderr_log)
            }
            with open(stdout_log, "ab") as out, open(stderr_log, "ab") as err:
                process = await asyncio.create_subprocess_exec(
                    config.command,
                    *args,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=out,
                    stderr=err,
                    env=env,
                    cwd=config.working_dir,
                    start_new_session=True,
                )
        else:
            process = await asyncio.create_subprocess_exec(
                config.command,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=config.working_dir,
                limit=STREAM_LIMIT,
            )

        handle = ServerHandle(
            id=config.id,
            transport=config.transport,
            process=process,
            started_at=datetime.now(timezone.utc),
            container_name=container_name,
            runtime=config.command if config.transport is TransportKind.CONTAINER else None,
            stdout_log=stdout_log if config.transport is TransportKind.DETACHED else None,
            stderr_log=None if self.interactive_logs and process.stderr else stderr_log,
        )

        if process.stderr is not None:
            self._relays[config.id] = _StderrRelay(
                config.id,
                process.stderr,
                None if self.interactive_logs else stderr_log,
            )

        return handle

    async def _await_startup(self, handle: ServerHandle) -> None:
        exit_task = asyncio.create_task(handle.process.wait())
        output_task = asyncio.create_task(self._first_output(handle))

        try:
            done, _ = await asyncio.wait(
                {exit_task, output_task},
                timeout=self.startup_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if output_task in done and exit_task not in done:
                settled, _ = await asyncio.wait(
                    {exit_task}, timeout=min(STARTUP_SETTLE_PERIOD, self.startup_timeout)
                )
                done |= settled
        finally:
            for task in (exit_task, output_task):
                if not task.done():
                    task.cancel()

        if exit_task in done:
            returncode = exit_task.result()
            tail = await self._stderr_tail(handle)
            detail = f"process exited with code {returncode}"
            if tail:
                detail += f": {tail}"
            raise ServerStartError(handle.id, detail)

        if output_task in done:
            logger.debug(f"Tool server {handle.id} acknowledged startup with output")
            return

        logger.debug(
            f"Tool server {handle.id} produced no output within "
            f"{self.startup_timeout}s, assuming it started"
        )

    async def _first_output(self, handle: ServerHandle) -> None:
        relay = self._relays.get(handle.id)
        if relay is not None:
            await relay.first_output.wait()
            return

        # Detached servers write straight to their log files
        initial = self._log_offsets.pop(handle.id, None)
        if initial is None:
            paths = [p for p in (handle.stdout_log, handle.stderr_log) if p is not None]
            initial = {path: _file_size(path) for path in paths}
        while True:
            if any(_file_size(path) > size for path, size in initial.items()):
                return
            await asyncio.sleep(LOG_POLL_INTERVAL)

    async def _stderr_tail(self, handle: ServerHandle) -> str:
        relay = self._relays.get(handle.id)
        if relay is not None:
            await asyncio.wait({relay.task}, timeout=1.0)
            return " | ".join(relay.tail)

        if handle.stderr_log is not None and handle.stderr_log.exists():
            with open(handle.stderr_log, "r", encoding="utf-8", errors="replace") as f:
                lines = [line.rstrip() for line in f.readlines()[-STDERR_TAIL_LINES:]]
            return " | ".join(line for line in lines if line)
        return ""

    async def _watch_exit(self, handle: ServerHandle) -> None:
        returncode = await handle.process.wait()
        logger.info(f"Tool server {handle.id} exited with code {returncode}")
        if self._handles.get(handle.id) is handle:
            del self._handles[handle.id]

    # --- Stop ---

    async def stop_server(self, server_id: str) -> None:
        """Stop a tool server; unknown or already stopped ids are a no-op."""
        handle = self._handles.pop(server_id, None)
        if handle is None:
            logger.debug(f"Tool server {server_id} is not running")
            return

        logger.info(f"Stopping tool server {server_id} ({handle.process_identifier})")
        if handle.transport is TransportKind.CONTAINER and handle.container_name:
            await self._stop_container(handle)
        await self._discard(handle)
        logger.info(f"Stopped tool server {server_id}")

    async def stop_all(self) -> None:
        """Stop every tracked server concurrently and wait for all of them."""
        server_ids = list(self._handles)
        if not server_ids:
            return

        logger.info(f"Stopping {len(server_ids)} tool servers")
        results = await asyncio.gather(
            *(self.stop_server(server_id) for server_id in server_ids),
            return_exceptions=True,
        )
        for server_id, result in zip(server_ids, results):
            if isinstance(result, BaseException):
                logger.error(f"Failed to stop tool server {server_id}: {result}")

    async def _discard(self, handle: ServerHandle) -> None:
        await self._terminate(handle)

        relay = self._relays.pop(handle.id, None)
        if relay is not None:
            await asyncio.wait({relay.task}, timeout=1.0)
            if not relay.task.done():
                relay.task.cancel()

        watcher = self._watchers.pop(handle.id, None)
        if watcher is not None and not watcher.done():
            watcher.cancel()

    async def _terminate(self, handle: ServerHandle) -> None:
        process = handle.process
        if process.returncode is not None:
            return

        try:
            process.terminate()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=self.stop_grace_period)
        except asyncio.TimeoutError:
            logger.warning(
                f"Tool server {handle.id} did not exit within "
                f"{self.stop_grace_period}s, killing it"
            )
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    async def _stop_container(self, handle: ServerHandle) -> None:
        grace = str(max(1, int(self.stop_grace_period)))
        for command in (
            [handle.runtime, "stop", "--time", grace, handle.container_name],
            [handle.runtime, "rm", "--force", handle.container_name],
        ):
            try:
                proc = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
                await proc.wait()
            except OSError as e:
                logger.warning(f"Failed to run '{' '.join(command)}': {e}")

    def _lock_for(self, server_id: str) -> asyncio.Lock:
        if server_id not in self._locks:
            self._locks[server_id] = asyncio.Lock()
        return self._locks[server_id]


def _append(log_file: BinaryIO, chunk: bytes) -> None:
    log_file.write(chunk)
    log_file.flush()


def _file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError:
        return 0
