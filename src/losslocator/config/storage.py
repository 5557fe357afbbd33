"""Where the cluster store and the geocoder cache live on disk."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "losslocator"
DEFAULT_DB_FILENAME: Final[str] = "clusters.db"
HTTP_CACHE_FILENAME: Final[str] = "geocoder_cache.db"
DATA_DIR_ENV: Final[str] = "LOSSLOCATOR_DATA_DIR"
TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Data directory holding the SQLite cluster store and the HTTP response cache.

    The directory is created on first use, not when the config is read.
    """

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME
    http_cache_filename: str = HTTP_CACHE_FILENAME

    def _resolved_dir(self) -> Path:
        path = self.data_dir.expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def ensure_data_dir(self) -> Path:
        return self._resolved_dir()

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self._resolved_dir() / self.database_filename}"

    def http_cache_path(self) -> Path:
        return self._resolved_dir() / self.http_cache_filename


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False


def get_storage_config() -> StorageConfig:
    if explicit := os.getenv(DATA_DIR_ENV):
        return StorageConfig(data_dir=Path(explicit))
    xdg_home = os.getenv("XDG_DATA_HOME")
    root = Path(xdg_home) if xdg_home else Path.home() / ".local" / "share"
    return StorageConfig(data_dir=root / APP_DIR_NAME)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins over the data directory; ``DATABASE_ECHO`` turns on SQL logging."""

    echo = os.getenv("DATABASE_ECHO", "").strip().lower() in TRUTHY
    if uri := os.getenv("DATABASE_URI"):
        return DatabaseConfig(uri=uri, echo=echo)
    return DatabaseConfig(uri=(storage or get_storage_config()).database_uri(), echo=echo)
