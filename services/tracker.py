"""Entry point used by front-ends: one tracker document behind a sync engine."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from core.errors import CodecError
from core.settings import SYNC
from models.document import Document, validate_payload
from services import codec
from services.sync_engine import FlushResult, SaveResult, SyncEngine, SyncState
from storage.backup import ensure_daily_snapshot
from storage.config import SyncConfig, save_config


logger = logging.getLogger("tracker.sync")

Mutation = Callable[[Document], Optional[Document]]


class Tracker:
    def __init__(
        self,
        engine: SyncEngine,
        *,
        config_path: Optional[Path] = None,
        snapshot_dir: Optional[Path] = None,
    ) -> None:
        self.engine = engine
        self.config_path = config_path
        self.snapshot_dir = snapshot_dir if snapshot_dir is not None else (
            SYNC.snapshot_directory if SYNC.snapshot_enabled else None
        )

    # ------------------------------------------------------------------
    def initialize(self, *, timeout: Optional[float] = None) -> SyncState:
        document = self.engine.load(timeout=timeout)
        if self.engine.state is SyncState.SYNCED:
            result = self.engine.flush_queue(timeout=timeout)
            if result.processed:
                logger.info("Synced %s pending changes", result.processed)
            document = self.engine.document
        if self.snapshot_dir is not None:
            try:
                ensure_daily_snapshot(document, self.snapshot_dir, keep_days=SYNC.snapshot_keep_days)
            except OSError as exc:
                logger.warning("Could not write daily snapshot: %s", exc)
        return self.engine.state

    def get_document(self) -> Document:
        return self.engine.document

    def mutate(self, fn: Mutation, summary: str, *, actor_id: Any) -> SaveResult:
        """Apply ``fn`` to a copy of the current document and save the result.

        ``fn`` may edit the document in place or return a replacement. Errors
        raised by ``fn`` propagate and leave the current document untouched.
        Attribution is up to ``fn``: the :mod:`services.board` helpers record
        their ``actor_id`` in history, while ``actor_id`` here only tags the log.
        """

        working = self.engine.document
        updated = fn(working)
        if updated is None:
            updated = working
        logger.debug("Mutation by %s: %s", actor_id, summary)
        return self.engine.save(updated, summary)

    def refresh(self, *, timeout: Optional[float] = None) -> Document:
        return self.engine.load(timeout=timeout)

    def sync_now(self, *, timeout: Optional[float] = None) -> FlushResult:
        return self.engine.flush_queue(timeout=timeout)

    def configure(self, config: SyncConfig, *, timeout: Optional[float] = None) -> SyncState:
        save_config(config, self.config_path)
        self.engine.reconfigure(config)
        return self.initialize(timeout=timeout)

    # ------------------------------------------------------------------
    def export_snapshot(self) -> bytes:
        return codec.encode(self.engine.document)

    def export_json(self) -> str:
        return json.dumps(self.engine.document.to_dict(), ensure_ascii=False, indent=2)

    def import_snapshot(self, data: bytes | str, *, actor_id: Any, actor_name: Optional[str] = None) -> SaveResult:
        """Replace the document with an exported snapshot.

        Accepts the codec envelope produced by :meth:`export_snapshot` or the
        plain JSON produced by :meth:`export_json`.
        """

        payload = _parse_snapshot(data)
        validate_payload(payload)
        document = Document.from_dict(payload)
        who = actor_name or _actor_name(self.engine.document, actor_id)
        return self.engine.save(document, f"Data imported from backup by {who}")


def _parse_snapshot(data: bytes | str) -> dict:
    raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    if raw.lstrip().startswith(b"{"):
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CodecError(f"Snapshot is not valid JSON: {exc}") from exc
    return codec.decode_payload(raw)


def _actor_name(document: Document, actor_id: Any) -> str:
    user = document.find_user(actor_id)
    return (user or {}).get("name") or "Unknown"


__all__ = ["Tracker"]
