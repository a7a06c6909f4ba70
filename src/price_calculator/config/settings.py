"""
Centralized settings and path configuration for the price calculator.
"""
import logging
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional


MAX_STACKED_DISCOUNTS = 4
TEMPO_TERMS = (7, 14, 30, 45, 60, 90)
DEFAULT_TEMPO_TERM = 30
BACKUP_VERSION = "2.0"

ENV_PREFIX = "PRICE_CALC_"


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path
    data_dir: Path

    # Local durable snapshot of every collection
    local_backup_path: Path

    # Persistence backend: "local" (JSON files) or "rest" (hosted PostgREST)
    store_backend: str = "local"
    store_url: Optional[str] = None
    store_key: Optional[str] = None

    # Streaming assistant endpoint
    assistant_url: Optional[str] = None
    assistant_key: Optional[str] = None

    # Timing
    backup_debounce_seconds: float = 2.0
    backup_status_poll_seconds: float = 5.0

    history_limit: int = 100
    log_level: str = "INFO"

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and PRICE_CALC_* environment."""
        root = project_root or get_project_root()
        data_dir = Path(_env("DATA_DIR", str(root / 'data')))

        return cls(
            project_root=root,
            data_dir=data_dir,
            local_backup_path=Path(_env("BACKUP_PATH", str(data_dir / 'auto_backup.json'))),
            store_backend=_env("STORE", "local").lower(),
            store_url=_env("STORE_URL"),
            store_key=_env("STORE_KEY"),
            assistant_url=_env("ASSISTANT_URL"),
            assistant_key=_env("ASSISTANT_KEY"),
            backup_debounce_seconds=float(_env("BACKUP_DEBOUNCE", "2.0")),
            backup_status_poll_seconds=float(_env("STATUS_POLL", "5.0")),
            history_limit=int(_env("HISTORY_LIMIT", "100")),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def configure_logging(level: Optional[str] = None):
    """Configure root logging once for API and script entry points."""
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
