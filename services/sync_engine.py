from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from logging.handlers import RotatingFileHandler
from typing import Callable, Optional, Tuple

from core.errors import AuthError, CodecError, ConflictError, SyncError
from core.settings import SYNC
from datetime_utils import to_iso, utc_now
from models.document import Document, seed_document
from services.github_client import ConnectivityResult, GitHubContentsClient
from services.merge import merge_documents
from storage.config import SyncConfig
from storage.local_store import LocalStore, PendingOperation


def _ensure_logger() -> logging.Logger:
    logger = logging.getLogger("tracker.sync")
    if not logger.handlers:
        SYNC.log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            SYNC.log_path,
            maxBytes=SYNC.log_max_bytes,
            backupCount=SYNC.log_backup_count,
            encoding="utf-8",
        )
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


class SyncState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    SYNCED = "synced"
    LOCAL_ONLY = "local"
    ERROR = "error"


class SaveStatus(str, Enum):
    SUCCESS = "success"
    QUEUED = "queued"
    # Merge retry lost the race again; the write is queued.
    CONFLICT = "conflict"
    # Credential rejected; kept locally, delivered after reconfiguration.
    LOCAL = "local"
    # Remote copy could not be decoded; queued until a clean load.
    CORRUPT = "corrupt"


@dataclass
class SaveResult:
    status: SaveStatus
    document: Document
    message: str = ""
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status is SaveStatus.SUCCESS

    @property
    def queued(self) -> bool:
        return self.status in (SaveStatus.QUEUED, SaveStatus.CONFLICT, SaveStatus.CORRUPT)


@dataclass
class FlushResult:
    processed: int
    remaining: int
    error: Optional[str] = None


@dataclass
class _Unsynced:
    document: Document
    summary: str
    base_token: Optional[str]
    rejected_at: datetime = field(default_factory=utc_now)


ClientFactory = Callable[[SyncConfig], GitHubContentsClient]


class SyncEngine:
    """Serializes load/save/flush of the shared document against the remote.

    Every public method holds one engine-wide lock for its whole duration,
    so concurrent callers queue behind the in-flight operation.
    """

    def __init__(
        self,
        store: LocalStore,
        config: Optional[SyncConfig] = None,
        client_factory: ClientFactory = GitHubContentsClient,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.config = config or SyncConfig()
        self._client_factory = client_factory
        self.client = self._build_client(self.config)
        self.logger = logger or _ensure_logger()
        self.state = SyncState.UNLOADED
        self.version_token: Optional[str] = None
        self.last_error: Optional[str] = None
        self.last_synced_at: Optional[datetime] = None
        self.auth_blocked = False
        self.remote_corrupt = False
        self._document: Optional[Document] = None
        self._unsynced: Optional[_Unsynced] = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Public API
    @property
    def configured(self) -> bool:
        return self.client is not None

    @property
    def document(self) -> Document:
        with self._lock:
            if self._document is None:
                self._document = self.store.load() or seed_document()
            return self._document.copy()

    def load(self, *, timeout: Optional[float] = None) -> Document:
        with self._lock:
            self.state = SyncState.LOADING
            if not self.configured:
                self.logger.info("No repository configured, running in local mode")
                self._document = self.store.load() or seed_document()
                self.version_token = None
                self.state = SyncState.LOCAL_ONLY
                return self._document.copy()

            if self.auth_blocked:
                self.logger.warning("Credential was rejected earlier; staying local until reconfigured")
                self._document = self.store.load() or seed_document()
                self.state = SyncState.ERROR
                return self._document.copy()

            try:
                self.client.probe(timeout=timeout)
                remote, token = self.client.read(timeout=timeout)
            except Exception as exc:  # any failure falls back to the local snapshot
                self._mark_failed(exc, "load")
                self._document = self.store.load() or seed_document()
                return self._document.copy()

            if token is None:
                # Remote file not created yet: keep whatever we already have locally.
                cached = self.store.load()
                if cached is not None:
                    remote = cached
            view = self._with_pending(remote)
            self.store.save(view)
            self._document = view
            self.version_token = token
            self.remote_corrupt = False
            self._mark_synced()
            self.logger.info("Loaded document from %s (sha=%s)", self.config.describe(), token)
            return view.copy()

    def save(
        self,
        document: Document,
        message: str,
        *,
        timeout: Optional[float] = None,
    ) -> SaveResult:
        with self._lock:
            stamped = document.copy()
            stamped.last_updated = to_iso()

            if self.state is not SyncState.SYNCED:
                self._persist(stamped)
                self.store.enqueue(stamped, message, self.version_token)
                self.logger.info("Queued '%s' while %s", message, self.state.value)
                return SaveResult(SaveStatus.QUEUED, stamped.copy(), message, self.last_error)

            if self.store.queue_size():
                # Earlier writes are still pending; this one must land after them.
                self._persist(stamped)
                self.store.enqueue(stamped, message, self.version_token)
                flushed = self._flush(timeout)
                if flushed.remaining == 0:
                    return SaveResult(SaveStatus.SUCCESS, self._document.copy(), message)
                return SaveResult(SaveStatus.QUEUED, self._document.copy(), message, flushed.error)

            try:
                new_token = self.client.write(stamped, self.version_token, message, timeout=timeout)
            except ConflictError:
                self.logger.warning("Conflict writing '%s', merging with remote", message)
                return self._save_after_conflict(stamped, message, timeout)
            except AuthError as exc:
                return self._reject_credential(exc, stamped, message)
            except Exception as exc:  # network and unexpected failures are transient
                self._mark_failed(exc, "save")
                self._persist(stamped)
                self.store.enqueue(stamped, message, self.version_token)
                return SaveResult(SaveStatus.QUEUED, stamped.copy(), message, self.last_error)

            self.version_token = new_token
            self._persist(stamped)
            self._mark_synced()
            self.logger.info("Committed '%s' (sha=%s)", message, new_token)
            return SaveResult(SaveStatus.SUCCESS, stamped.copy(), message)

    def flush_queue(self, *, timeout: Optional[float] = None) -> FlushResult:
        with self._lock:
            return self._flush(timeout)

    def reconfigure(self, config: SyncConfig) -> SyncState:
        """Swap repository coordinates or credential; identical config is a no-op."""

        with self._lock:
            if config == self.config and not self.auth_blocked:
                return self.state
            self.logger.info("Reconfiguring sync target to %s", config.describe())
            if self.client is not None and hasattr(self.client, "close"):
                self.client.close()
            self.config = config
            self.client = self._build_client(config)
            self.version_token = None
            self.last_error = None
            self.auth_blocked = False
            self.remote_corrupt = False
            self.state = SyncState.UNLOADED
            if self._unsynced is not None:
                # The rejected write predates anything queued while blocked.
                rejected = PendingOperation(
                    id=None,
                    document=self._unsynced.document,
                    summary=self._unsynced.summary,
                    created_at=self._unsynced.rejected_at,
                    base_token=self._unsynced.base_token,
                )
                self.store.save_queue([rejected, *self.store.load_queue()])
                self._unsynced = None
            return self.state

    def test_connection(self, *, timeout: Optional[float] = None) -> ConnectivityResult:
        with self._lock:
            if not self.configured:
                raise SyncError("GitHub configuration incomplete")
            return self.client.probe(timeout=timeout)

    def status(self) -> dict:
        with self._lock:
            return {
                "state": self.state.value,
                "configured": self.configured,
                "target": self.config.describe() if self.configured else None,
                "versionToken": self.version_token,
                "queueSize": self.store.queue_size(),
                "authBlocked": self.auth_blocked,
                "remoteCorrupt": self.remote_corrupt,
                "lastError": self.last_error,
                "lastSyncedAt": to_iso(self.last_synced_at) if self.last_synced_at else None,
            }

    # ------------------------------------------------------------------
    # Queue helpers
    def _flush(self, timeout: Optional[float]) -> FlushResult:
        operations = self.store.load_queue()
        if not operations:
            return FlushResult(0, 0)
        if not self.configured or self.auth_blocked or self.remote_corrupt:
            return FlushResult(0, len(operations), self.last_error)
        if self.state is not SyncState.SYNCED and not self._reconnect(timeout):
            return FlushResult(0, len(operations), self.last_error)

        processed = 0
        error: Optional[str] = None
        last_written: Optional[Document] = None
        merged_in_pass = False
        for op in operations:
            document, base = op.document, op.base_token
            if last_written is not None:
                base = self.version_token
                if merged_in_pass:
                    # Snapshot was taken before the merge and lacks what the remote gained.
                    document = merge_documents(last_written, op.document)
            try:
                last_written, merged = self._deliver(document, op.summary, base, timeout)
            except ConflictError as exc:
                error = str(exc)
                self.last_error = error
                self.logger.warning("Pending '%s' still conflicts after merge", op.summary)
                break
            except Exception as exc:  # stop at the first failure to keep FIFO order
                self._mark_failed(exc, "flush")
                error = self.last_error
                break
            merged_in_pass = merged_in_pass or merged
            self.store.remove(op.id)
            processed += 1
            self.logger.info("Delivered pending '%s' (sha=%s)", op.summary, self.version_token)

        remaining = self.store.queue_size()
        if remaining == 0 and last_written is not None:
            self._persist(last_written)
        return FlushResult(processed, remaining, error)

    def _deliver(
        self,
        document: Document,
        summary: str,
        base_token: Optional[str],
        timeout: Optional[float],
    ) -> Tuple[Document, bool]:
        """Write one snapshot; returns what was written and whether it was merged."""

        stamped = document.copy()
        stamped.last_updated = to_iso()
        try:
            self.version_token = self.client.write(stamped, base_token, summary, timeout=timeout)
            return stamped, False
        except ConflictError:
            self.logger.warning("Conflict delivering '%s', merging with remote", summary)
        merged, token = self._merge_and_retry(stamped, summary, timeout)
        self.version_token = token
        return merged, True

    def _with_pending(self, remote: Document) -> Document:
        operations = self.store.load_queue()
        if not operations:
            return remote
        # Undelivered edits stay visible on top of the fresh remote copy.
        return merge_documents(remote, operations[-1].document)

    def _reconnect(self, timeout: Optional[float]) -> bool:
        try:
            self.client.probe(timeout=timeout)
        except Exception as exc:  # reported through status()
            self._mark_failed(exc, "reconnect")
            return False
        self._mark_synced()
        return True

    # ------------------------------------------------------------------
    # Conflict helpers
    def _merge_and_retry(
        self,
        local: Document,
        message: str,
        timeout: Optional[float],
    ) -> Tuple[Document, str]:
        remote, token = self.client.read(timeout=timeout)
        merged = merge_documents(remote, local)
        new_token = self.client.write(merged, token, f"{message} (merged)", timeout=timeout)
        return merged, new_token

    def _save_after_conflict(
        self,
        stamped: Document,
        message: str,
        timeout: Optional[float],
    ) -> SaveResult:
        try:
            merged, token = self._merge_and_retry(stamped, message, timeout)
        except ConflictError as exc:
            self.last_error = str(exc)
            self.logger.warning("Merged write of '%s' conflicted again, queueing", message)
            self._persist(stamped)
            self.store.enqueue(stamped, message, self.version_token)
            return SaveResult(SaveStatus.CONFLICT, stamped.copy(), message, self.last_error)
        except CodecError as exc:
            self._mark_failed(exc, "merge")
            self._persist(stamped)
            self.store.enqueue(stamped, message, self.version_token)
            return SaveResult(SaveStatus.CORRUPT, stamped.copy(), message, self.last_error)
        except AuthError as exc:
            return self._reject_credential(exc, stamped, message)
        except Exception as exc:  # transient, same as a failed first write
            self._mark_failed(exc, "merge")
            self._persist(stamped)
            self.store.enqueue(stamped, message, self.version_token)
            return SaveResult(SaveStatus.QUEUED, stamped.copy(), message, self.last_error)

        self.version_token = token
        self._persist(merged)
        self._mark_synced()
        self.logger.info("Committed merged '%s' (sha=%s)", message, token)
        return SaveResult(SaveStatus.SUCCESS, merged.copy(), f"{message} (merged)")

    def _reject_credential(self, exc: AuthError, stamped: Document, message: str) -> SaveResult:
        self._mark_failed(exc, "save")
        self._persist(stamped)
        self._unsynced = _Unsynced(stamped.copy(), message, self.version_token)
        return SaveResult(
            SaveStatus.LOCAL,
            stamped.copy(),
            message,
            "Invalid GitHub token. Please reconfigure in Settings.",
        )

    # ------------------------------------------------------------------
    def _build_client(self, config: SyncConfig):
        if not config.is_complete():
            return None
        return self._client_factory(config)

    def _persist(self, document: Document) -> None:
        self.store.save(document)
        self._document = document

    def _mark_synced(self) -> None:
        self.state = SyncState.SYNCED
        self.last_error = None
        self.last_synced_at = utc_now()

    def _mark_failed(self, exc: Exception, action: str) -> None:
        self.last_error = str(exc) or exc.__class__.__name__
        self.state = SyncState.ERROR
        if isinstance(exc, CodecError):
            # No automatic retries until a load decodes cleanly again.
            self.remote_corrupt = True
            self.last_error = f"Remote document is corrupt: {exc}"
            self.logger.error("GitHub %s returned an unreadable document: %s", action, exc)
        elif isinstance(exc, AuthError):
            self.auth_blocked = True
            self.logger.error("GitHub rejected the credential during %s: %s", action, exc)
        elif isinstance(exc, SyncError) and exc.transient:
            self.logger.warning("GitHub %s failed, will retry later: %s", action, exc)
        else:
            self.logger.error("GitHub %s failed: %s", action, exc)


__all__ = [
    "FlushResult",
    "SaveResult",
    "SaveStatus",
    "SyncEngine",
    "SyncState",
]
