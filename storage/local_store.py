"""Durable client-side persistence: cached document and pending-operation queue."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.errors import StorageError, ValidationError
from datetime_utils import ensure_utc, utc_now
from models.cached_document import CACHE_ROW_ID, CachedDocument
from models.document import Document
from models.pending_op import PendingOp
from storage.db import get_session


logger = logging.getLogger("tracker.store")


@dataclass
class PendingOperation:
    id: Optional[int]
    document: Document
    summary: str
    created_at: datetime
    base_token: Optional[str] = None


def _serialise(document: Document) -> str:
    return json.dumps(document.to_dict(), ensure_ascii=False)


def _deserialise(payload: Optional[str]) -> Optional[Document]:
    if not payload:
        return None
    try:
        return Document.from_dict(json.loads(payload))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.warning("Discarding unreadable stored document: %s", exc)
        return None


class LocalStore:
    """SQLite-backed store; holds no business logic."""

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    # ----- document -----
    def load(self) -> Optional[Document]:
        with self._session_factory() as session:
            row = session.get(CachedDocument, CACHE_ROW_ID)
            return _deserialise(row.payload if row else None)

    def save(self, document: Document) -> None:
        payload = _serialise(document)
        try:
            with self._session_factory() as session:
                row = session.get(CachedDocument, CACHE_ROW_ID)
                if row is None:
                    row = CachedDocument(id=CACHE_ROW_ID, payload=payload)
                else:
                    row.payload = payload
                    row.saved_at = utc_now()
                session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to persist document locally: {exc}") from exc

    # ----- queue -----
    def load_queue(self) -> List[PendingOperation]:
        with self._session_factory() as session:
            rows = list(session.exec(select(PendingOp).order_by(PendingOp.id.asc())))

        result: List[PendingOperation] = []
        for row in rows:
            document = _deserialise(row.snapshot)
            if document is None:
                # Keep the slot so ordering stays intact; an empty snapshot is still a write.
                document = Document()
            result.append(
                PendingOperation(
                    id=row.id,
                    document=document,
                    summary=row.summary,
                    created_at=ensure_utc(row.created_at),
                    base_token=row.base_token,
                )
            )
        return result

    def save_queue(self, operations: Iterable[PendingOperation]) -> None:
        """Replace the whole queue, preserving the given order."""
        try:
            with self._session_factory() as session:
                for row in session.exec(select(PendingOp)).all():
                    session.delete(row)
                session.flush()
                for op in operations:
                    session.add(
                        PendingOp(
                            summary=op.summary,
                            snapshot=_serialise(op.document),
                            base_token=op.base_token,
                            created_at=op.created_at or utc_now(),
                        )
                    )
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to persist sync queue: {exc}") from exc

    def enqueue(
        self,
        document: Document,
        summary: str,
        base_token: Optional[str] = None,
    ) -> PendingOperation:
        record = PendingOp(
            summary=summary,
            snapshot=_serialise(document),
            base_token=base_token,
            created_at=utc_now(),
        )
        try:
            with self._session_factory() as session:
                session.add(record)
                session.commit()
                session.refresh(record)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to enqueue pending operation: {exc}") from exc
        return PendingOperation(
            id=record.id,
            document=document.copy(),
            summary=summary,
            created_at=ensure_utc(record.created_at),
            base_token=base_token,
        )

    def remove(self, op_id: int) -> None:
        try:
            with self._session_factory() as session:
                record = session.get(PendingOp, op_id)
                if record:
                    session.delete(record)
                    session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to drop pending operation {op_id}: {exc}") from exc

    def queue_size(self) -> int:
        with self._session_factory() as session:
            return int(session.exec(select(func.count()).select_from(PendingOp)).one())

    def clear(self) -> None:
        self.save_queue([])


__all__ = ["LocalStore", "PendingOperation"]
