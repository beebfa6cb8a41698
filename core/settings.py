"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "OperationTracker"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"
BACKUP_DIR = DATA_DIR / "backups"

for _dir in (DATA_DIR, LOG_DIR, BACKUP_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "tracker.db"
CONFIG_PATH = DATA_DIR / "github-config.json"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


@dataclass(frozen=True)
class GitHubSettings:
    api_url: str = "https://api.github.com"
    accept: str = "application/vnd.github.v3+json"
    user_agent: str = "operation-tracker-sync"
    timeout_sec: float = 15.0
    default_branch: str = "main"
    default_path: str = "data/db.json"


GITHUB = GitHubSettings()


@dataclass(frozen=True)
class SyncSettings:
    log_path: Path = SYNC_LOG_PATH
    log_max_bytes: int = 1_000_000
    log_backup_count: int = 3
    snapshot_enabled: bool = True
    snapshot_directory: Path = BACKUP_DIR
    snapshot_keep_days: int = 7


SYNC = SyncSettings()


DOCUMENT_SCHEMA_VERSION = "1.0.0"

# Initial roster written into a freshly created document.
SEED_USERS: tuple[dict, ...] = (
    {"id": 1, "name": "Liam", "role": "Tech Lead"},
    {"id": 2, "name": "Trân", "role": "Sales Lead"},
    {"id": 3, "name": "Taddy", "role": "CEO"},
    {"id": 4, "name": "Hiếu", "role": "Software Lead"},
    {"id": 5, "name": "Vỹ", "role": "UX Lead"},
    {"id": 6, "name": "Intern Thân", "role": "Tech Intern"},
    {"id": 7, "name": "Intern Trân", "role": "Tech Intern"},
)


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "BACKUP_DIR",
    "DB_PATH",
    "CONFIG_PATH",
    "SYNC_LOG_PATH",
    "GITHUB",
    "SYNC",
    "DOCUMENT_SCHEMA_VERSION",
    "SEED_USERS",
    "get_default_data_dir",
]
