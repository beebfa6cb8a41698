"""SQLModel table for document writes waiting for remote delivery."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


class PendingOp(SQLModel, table=True):
    # Autoincrement id doubles as the FIFO position.
    id: Optional[int] = Field(default=None, primary_key=True)
    summary: str
    snapshot: str
    # Remote version the snapshot was derived from; stale tokens trigger a merge.
    base_token: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, index=True)


__all__ = ["PendingOp"]
