"""Where the local order store lives and how to connect to it."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .env import env_int
from .errors import ConfigurationError

APP_DIR_NAME: Final[str] = "ordersync"
DEFAULT_DB_FILENAME: Final[str] = "ordersync.db"
# an import holds write transactions per batch; a concurrent `resolve` waits this long
DEFAULT_SQLITE_BUSY_TIMEOUT_SECONDS: Final[int] = 30


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Directory holding the default SQLite order store."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def database_path(self, *, ensure: bool = True) -> Path:
        data_dir = self.data_dir.expanduser().resolve()
        if ensure:
            data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / self.database_filename

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection settings for the order store.

    SQLite connections wait ``busy_timeout_seconds`` for a database lock held by another
    command; other backends ping pooled connections before use.
    """

    uri: str
    busy_timeout_seconds: int = DEFAULT_SQLITE_BUSY_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        try:
            make_url(self.uri)
        except ArgumentError as exc:
            raise ConfigurationError(f"Invalid DATABASE_URI {self.uri!r}: {exc}") from exc

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.uri).get_backend_name() == "sqlite"

    def engine_options(self) -> dict[str, object]:
        if self.is_sqlite:
            return {"connect_args": {"timeout": self.busy_timeout_seconds}}
        return {"pool_pre_ping": True}


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("ORDERSYNC_DATA_DIR")
    return StorageConfig(data_dir=Path(env_dir) if env_dir else _default_data_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise the SQLite file in the data directory."""

    timeout = env_int("ORDERSYNC_DB_BUSY_TIMEOUT", DEFAULT_SQLITE_BUSY_TIMEOUT_SECONDS)
    uri = os.getenv("DATABASE_URI", "").strip()
    if not uri:
        uri = (storage or get_storage_config()).database_uri()
    return DatabaseConfig(uri=uri, busy_timeout_seconds=timeout)
