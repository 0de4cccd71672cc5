"""Configuration and connection profiles for pybuildsync.

Connection profiles live in ``connections.json`` inside the config
directory (``~/.config/pybuildsync`` unless ``PYBUILDSYNC_CONFIG_DIR`` is
set)::

    {
      "schemaVersion": 1,
      "connections": [
        {"id": "local", "label": "Local remote engine",
         "url": "http://localhost:9090/api/v1/"}
      ]
    }

``project-connections.json`` maps project IDs to connection IDs.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
LOCAL_CONNECTION_ID = "local"
DEFAULT_LOCAL_URL = "http://localhost:9090/api/v1/"

CONNECTIONS_FILE = "connections.json"
PROJECT_CONNECTIONS_FILE = "project-connections.json"


@dataclass
class Connection:
    """A remote engine the CLI can talk to."""

    id: str
    label: str
    url: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Connection":
        return cls(
            id=str(data["id"]),
            label=str(data.get("label", "")),
            url=str(data.get("url", "")),
        )


def _default_local_connection() -> Connection:
    return Connection(
        id=LOCAL_CONNECTION_ID, label="Local remote engine", url=DEFAULT_LOCAL_URL
    )


class Config:
    """Manages configuration for pybuildsync."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config files. Defaults to
                ``$PYBUILDSYNC_CONFIG_DIR`` or ``~/.config/pybuildsync``
        """
        if config_dir is None:
            env_dir = os.environ.get("PYBUILDSYNC_CONFIG_DIR")
            config_dir = (
                Path(env_dir) if env_dir else Path.home() / ".config" / "pybuildsync"
            )
        self.config_dir = config_dir

    # =========================
    # Environment overrides
    # =========================

    @property
    def api_url(self) -> Optional[str]:
        """Remote engine URL from ``PYBUILDSYNC_API_URL``, if set."""
        return os.environ.get("PYBUILDSYNC_API_URL") or None

    @property
    def token(self) -> Optional[str]:
        """Bearer token from ``PYBUILDSYNC_TOKEN``, if set."""
        return os.environ.get("PYBUILDSYNC_TOKEN") or None

    # =========================
    # File helpers
    # =========================

    def get_connections_path(self) -> Path:
        return self.config_dir / CONNECTIONS_FILE

    def get_project_connections_path(self) -> Path:
        return self.config_dir / PROJECT_CONNECTIONS_FILE

    def _read_json(self, path: Path) -> Optional[Any]:
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e

    def _write_json(self, path: Path, data: Any) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise ConfigError(f"Cannot write {path}: {e}") from e

    # =========================
    # Connections
    # =========================

    def _load_connections(self) -> list[Connection]:
        data = self._read_json(self.get_connections_path())
        if data is None:
            connections = [_default_local_connection()]
            self._save_connections(connections)
            return connections
        if not isinstance(data, dict) or not isinstance(
            data.get("connections"), list
        ):
            raise ConfigError(
                f"{self.get_connections_path()} has no 'connections' list"
            )

        upgraded = data.get("schemaVersion") != SCHEMA_VERSION
        try:
            connections = []
            for entry in data["connections"]:
                if "id" not in entry and "name" in entry:
                    # Version 0 files named the identifier "name"
                    entry = {**entry, "id": entry["name"]}
                    upgraded = True
                connections.append(Connection.from_dict(entry))
        except (KeyError, TypeError) as e:
            raise ConfigError(f"Malformed connection entry: {e}") from e

        if not any(c.id == LOCAL_CONNECTION_ID for c in connections):
            connections.insert(0, _default_local_connection())
            upgraded = True
        if upgraded:
            logger.info(f"Upgrading {self.get_connections_path()} to schema v1")
            self._save_connections(connections)
        return connections

    def _save_connections(self, connections: list[Connection]) -> None:
        self._write_json(
            self.get_connections_path(),
            {
                "schemaVersion": SCHEMA_VERSION,
                "connections": [asdict(c) for c in connections],
            },
        )

    def get_connections(self) -> list[Connection]:
        """All connection profiles, the local one first."""
        return self._load_connections()

    def get_connection(self, connection_id: str) -> Connection:
        """Look up a connection profile.

        Raises:
            ConfigError: If no connection has this ID
        """
        for connection in self._load_connections():
            if connection.id == connection_id:
                return connection
        raise ConfigError(f"Connection '{connection_id}' not found")

    def add_connection(self, connection_id: str, label: str, url: str) -> Connection:
        """Store a new connection profile.

        Raises:
            ConfigError: If the ID is taken or the URL is empty
        """
        connection_id = connection_id.strip()
        url = url.strip()
        if not connection_id:
            raise ConfigError("Connection ID must not be empty")
        if not url:
            raise ConfigError("Connection URL must not be empty")

        connections = self._load_connections()
        if any(c.id.lower() == connection_id.lower() for c in connections):
            raise ConfigError(f"Connection '{connection_id}' already exists")

        connection = Connection(id=connection_id, label=label, url=url)
        connections.append(connection)
        self._save_connections(connections)
        return connection

    def remove_connection(self, connection_id: str) -> None:
        """Delete a connection profile and any project mappings to it.

        Raises:
            ConfigError: For the local connection or an unknown ID
        """
        if connection_id == LOCAL_CONNECTION_ID:
            raise ConfigError("The local connection cannot be removed")

        connections = self._load_connections()
        remaining = [c for c in connections if c.id != connection_id]
        if len(remaining) == len(connections):
            raise ConfigError(f"Connection '{connection_id}' not found")
        self._save_connections(remaining)

        mappings = self._load_project_connections()
        kept = {p: c for p, c in mappings.items() if c != connection_id}
        if kept != mappings:
            self._write_json(self.get_project_connections_path(), kept)

    # =========================
    # Project -> connection mappings
    # =========================

    def _load_project_connections(self) -> dict[str, str]:
        data = self._read_json(self.get_project_connections_path())
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"{self.get_project_connections_path()} must hold a JSON object"
            )
        return {str(k): str(v) for k, v in data.items()}

    def set_project_connection(self, project_id: str, connection_id: str) -> None:
        """Map a project to a connection.

        Raises:
            ConfigError: If the connection does not exist
        """
        self.get_connection(connection_id)
        mappings = self._load_project_connections()
        mappings[project_id] = connection_id
        self._write_json(self.get_project_connections_path(), mappings)

    def get_project_connection(self, project_id: str) -> str:
        """Connection ID of a project, falling back to the local connection."""
        return self._load_project_connections().get(project_id, LOCAL_CONNECTION_ID)

    def remove_project_connection(self, project_id: str) -> bool:
        """Forget a project's mapping. Returns False if there was none."""
        mappings = self._load_project_connections()
        if mappings.pop(project_id, None) is None:
            return False
        self._write_json(self.get_project_connections_path(), mappings)
        return True


# Global config instance
config = Config()
