"""App configuration loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field

CONFIG_DIR = Path.home() / ".config" / "sqlpeek"
CONFIG_FILE = CONFIG_DIR / "config.toml"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    store_path: Path = Field(default_factory=lambda: CONFIG_DIR / "config.db")
    connect_timeout: float = 5.0
    query_timeout: float | None = 30.0
    default_page_size: int = Field(default=50, gt=0)
    log_level: str = "WARNING"

    def with_store_path(self, path: Path | str) -> AppConfig:
        """Return a copy pointing at a different profile store file."""

        return self.model_copy(update={"store_path": Path(path)})


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file(path or CONFIG_FILE)
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()
    return AppConfig(**data)


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    store_path = raw.get("store_path")
    if isinstance(store_path, str) and store_path:
        data["store_path"] = Path(store_path).expanduser()
    connect_timeout = raw.get("connect_timeout")
    if isinstance(connect_timeout, (int, float)) and not isinstance(connect_timeout, bool) and connect_timeout > 0:
        data["connect_timeout"] = float(connect_timeout)
    query_timeout = raw.get("query_timeout")
    if isinstance(query_timeout, (int, float)) and not isinstance(query_timeout, bool):
        # zero or negative disables the per-statement deadline
        data["query_timeout"] = float(query_timeout) if query_timeout > 0 else None
    page_size = raw.get("default_page_size")
    if isinstance(page_size, int) and not isinstance(page_size, bool) and page_size > 0:
        data["default_page_size"] = page_size
    log_level = raw.get("log_level")
    if isinstance(log_level, str) and log_level.upper() in _LOG_LEVELS:
        data["log_level"] = log_level.upper()
    return data


__all__ = ["AppConfig", "CONFIG_FILE", "load_config"]
