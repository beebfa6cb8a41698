"""JSON-backed store for the repository coordinates and credential."""
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from core.settings import CONFIG_PATH, GITHUB


_RAW_TOKEN_PREFIXES = ("ghp_", "github_pat_", "gho_", "ghs_")


@dataclass(frozen=True)
class SyncConfig:
    """Where the shared document lives and how to reach it."""

    owner: str = ""
    repo: str = ""
    branch: str = GITHUB.default_branch
    path: str = GITHUB.default_path
    token: str = ""

    def is_complete(self) -> bool:
        return all(
            (value or "").strip()
            for value in (self.owner, self.repo, self.branch, self.path, self.token)
        )

    def with_changes(self, **changes: Any) -> "SyncConfig":
        known = {k: v for k, v in changes.items() if k in self.__dataclass_fields__ and v is not None}
        return replace(self, **known)

    def describe(self) -> str:
        return f"{self.owner}/{self.repo}@{self.branch}:{self.path}"


def obfuscate_token(token: str) -> str:
    if not token:
        return ""
    return base64.b64encode(token.encode("utf-8")).decode("ascii")


def reveal_token(stored: Optional[str]) -> str:
    """Undo :func:`obfuscate_token`; raw personal access tokens pass through."""

    if not stored:
        return ""
    if stored.startswith(_RAW_TOKEN_PREFIXES):
        return stored
    try:
        return base64.b64decode(stored, validate=True).decode("utf-8")
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return stored


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _load_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def load_config(path: Optional[Path] = None) -> SyncConfig:
    target = path or CONFIG_PATH
    data = _load_raw(target)
    return SyncConfig(
        owner=str(data.get("owner") or ""),
        repo=str(data.get("repo") or ""),
        branch=str(data.get("branch") or GITHUB.default_branch),
        path=str(data.get("dataFile") or GITHUB.default_path),
        token=reveal_token(data.get("token")),
    )


def save_config(config: SyncConfig, path: Optional[Path] = None) -> None:
    target = path or CONFIG_PATH
    _ensure_parent(target)
    data = asdict(config)
    data["dataFile"] = data.pop("path")
    data["token"] = obfuscate_token(config.token)
    payload = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True)
    tmp = target.with_suffix(".tmp")
    try:
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(target)
    finally:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass


def update_config(path: Optional[Path] = None, **changes: Any) -> SyncConfig:
    target = path or CONFIG_PATH
    cfg = load_config(target).with_changes(**changes)
    save_config(cfg, target)
    return cfg


__all__ = [
    "SyncConfig",
    "load_config",
    "obfuscate_token",
    "reveal_token",
    "save_config",
    "update_config",
]
