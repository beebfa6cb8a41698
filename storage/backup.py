"""Dated local snapshots of the tracker document."""
from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path

from models.document import Document


SNAPSHOT_PREFIX = "operation-tracker-backup-"


def snapshot_filename(day=None) -> str:
    day = day or datetime.now().date()
    return f"{SNAPSHOT_PREFIX}{day.isoformat()}.json"


def _parse_snapshot_date(path: Path) -> datetime | None:
    stem = path.stem
    if not stem.startswith(SNAPSHOT_PREFIX):
        return None
    try:
        return datetime.strptime(stem[len(SNAPSHOT_PREFIX) :], "%Y-%m-%d")
    except ValueError:
        return None


def ensure_daily_snapshot(
    document: Document,
    backup_dir: str | Path,
    *,
    keep_days: int = 7,
) -> Path | None:
    """Write today's plain-JSON snapshot once and rotate old copies."""

    backups = Path(backup_dir)
    backups.mkdir(parents=True, exist_ok=True)

    today = datetime.now().date()
    destination = backups / snapshot_filename(today)

    created_path: Path | None = None
    if not destination.exists():
        payload = json.dumps(document.to_dict(), ensure_ascii=False, indent=2)
        destination.write_text(payload, encoding="utf-8")
        created_path = destination

    if keep_days > 0:
        cutoff = today - timedelta(days=keep_days - 1)
        for file in backups.glob(f"{SNAPSHOT_PREFIX}*.json"):
            snapshot_date = _parse_snapshot_date(file)
            if snapshot_date and snapshot_date.date() < cutoff:
                try:
                    file.unlink()
                except OSError:
                    pass

    return created_path


__all__ = ["ensure_daily_snapshot", "snapshot_filename"]
