"""Loading of tool-server definitions from the JSON config file.

Two top-level shapes are accepted and resolved once into ServerConfig records:

    {"mcpServers": {"filesystem": {"command": "npx", "args": [...]}}}
    {"servers": [{"id": "filesystem", "command": "npx", "args": [...]}]}

Anything else degrades to an empty server list with a warning. The rest of
the application must stay usable without any tool servers, so load() never
raises.
"""

import json
import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcp_relay.servers.types import CONTAINER_RUNTIMES, ServerConfig, TransportKind

logger = logging.getLogger(__name__)


class McpServerEntry(BaseModel):
    """One server record as written in the config file."""

    command: str = Field(min_length=1)
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    cwd: str | None = None
    capabilities: list[str] = Field(default_factory=list)
    name: str | None = None
    transport: TransportKind | None = None

    model_config = ConfigDict(extra="ignore")


class FlatServerEntry(McpServerEntry):
    """Server record from the flat "servers" array, which carries its own id."""

    id: str = Field(min_length=1)


def _resolve_transport(entry: McpServerEntry) -> TransportKind:
    if entry.transport is not None:
        return entry.transport
    if os.path.basename(entry.command) in CONTAINER_RUNTIMES:
        return TransportKind.CONTAINER
    return TransportKind.STDIO


def _to_server_config(server_id: str, entry: McpServerEntry) -> ServerConfig:
    return ServerConfig(
        id=server_id,
        name=entry.name or server_id,
        command=entry.command,
        args=tuple(entry.args),
        env=MappingProxyType(dict(entry.env)),
        working_dir=entry.cwd,
        capabilities=frozenset(entry.capabilities),
        transport=_resolve_transport(entry),
    )


class ServerConfigStore:
    """Reads and normalizes tool-server definitions.

    The store remembers the last successfully loaded list so that callers can
    look configs up by id without re-reading the file.
    """

    def __init__(self, path: Path | None = None) -> None:
        """Initialize the store.

        Args:
            path: Default config file used when load() is called without one
        """
        self.path = path
        self._configs: list[ServerConfig] = []

    @property
    def configs(self) -> list[ServerConfig]:
        """Server configs from the most recent load()."""
        return list(self._configs)

    def get(self, server_id: str) -> ServerConfig | None:
        """Look up a loaded config by server id."""
        for config in self._configs:
            if config.id == server_id:
                return config
        return None

    def load(self, path: Path | None = None) -> list[ServerConfig]:
        """Load server configs from a JSON file.

        Args:
            path: Config file to read; defaults to the path given at construction

        Returns:
            Ordered list of ServerConfig records, empty if the file is missing,
            unreadable or has no recognized shape
        """
        config_path = path or self.path
        if config_path is None:
            logger.warning("No tool server config file configured")
            self._configs = []
            return []

        raw = self._read_json(Path(config_path))
        if raw is None:
            self._configs = []
            return []

        if isinstance(raw, dict) and isinstance(raw.get("mcpServers"), dict):
            configs = self._from_mapping(raw["mcpServers"])
        elif isinstance(raw, dict) and isinstance(raw.get("servers"), list):
            configs = self._from_list(raw["servers"])
        else:
            logger.warning(
                f"Unrecognized config shape in {config_path}: "
                "expected an 'mcpServers' object or a 'servers' array"
            )
            configs = []

        if configs:
            logger.info(f"Loaded {len(configs)} tool server configs from {config_path}")
        else:
            logger.warning(f"No tool server configs found in {config_path}")

        self._configs = configs
        return list(configs)

    def _read_json(self, config_path: Path) -> Any:
        if not config_path.exists():
            logger.warning(f"Tool server config not found: {config_path}")
            return None

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read tool server config {config_path}: {e}")
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in tool server config {config_path}: {e}")
        return None

    def _from_mapping(self, servers: dict[str, Any]) -> list[ServerConfig]:
        configs: list[ServerConfig] = []
        for server_id, data in servers.items():
            if not server_id:
                logger.warning("Skipping tool server entry with empty id")
                continue
            try:
                entry = McpServerEntry.model_validate(data)
            except ValidationError as e:
                logger.warning(f"Skipping invalid tool server entry '{server_id}': {e}")
                continue
            configs.append(_to_server_config(server_id, entry))
        return configs

    def _from_list(self, servers: list[Any]) -> list[ServerConfig]:
        configs: list[ServerConfig] = []
        seen: set[str] = set()
        for index, data in enumerate(servers):
            try:
                entry = FlatServerEntry.model_validate(data)
            except ValidationError as e:
                logger.warning(f"Skipping invalid tool server entry #{index}: {e}")
                continue
            if entry.id in seen:
                logger.warning(f"Skipping duplicate tool server id '{entry.id}'")
                continue
            seen.add(entry.id)
            configs.append(_to_server_config(entry.id, entry))
        return configs
