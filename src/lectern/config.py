"""Configuration management via .env file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

log = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://localhost:3000"


def _xdg_data_home() -> Path:
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def _xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


@dataclass
class AppConfig:
    # Paths
    data_dir: Path = field(default_factory=lambda: _xdg_data_home() / "lectern")
    config_dir: Path = field(default_factory=lambda: _xdg_config_home() / "lectern")
    db_path: Path = field(init=False)
    log_path: Path = field(init=False)

    # Remote
    server_url: str = DEFAULT_SERVER_URL
    library_path: Optional[str] = None  # sent as x-library-path when set
    sync_timeout: float = 60.0  # seconds, per request
    push_batch_size: int = 500

    def __post_init__(self) -> None:
        self.db_path = self.data_dir / "lectern.db"
        self.log_path = self.data_dir / "lectern.log"
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)


def _env_number(name: str, default: float, cast: type) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        log.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default
    if value <= 0:
        log.warning("Ignoring non-positive %s=%r, using %s", name, raw, default)
        return default
    return value


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    """Load config from .env file. Searches CWD then config dir."""
    search_paths = [
        env_path,
        Path.cwd() / ".env",
        _xdg_config_home() / "lectern" / ".env",
        Path.home() / ".env",
    ]
    for p in search_paths:
        if p and p.exists():
            load_dotenv(p)
            break

    defaults = AppConfig()
    return AppConfig(
        server_url=os.getenv("LECTERN_SERVER_URL", defaults.server_url),
        library_path=os.getenv("LECTERN_LIBRARY_PATH") or None,
        sync_timeout=_env_number(
            "LECTERN_SYNC_TIMEOUT", defaults.sync_timeout, float
        ),
        push_batch_size=_env_number(
            "LECTERN_PUSH_BATCH_SIZE", defaults.push_batch_size, int
        ),
    )
