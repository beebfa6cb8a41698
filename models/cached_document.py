"""SQLModel table holding the last-known-good document."""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


CACHE_ROW_ID = 1


class CachedDocument(SQLModel, table=True):
    id: int = Field(default=CACHE_ROW_ID, primary_key=True)
    payload: str
    saved_at: datetime = Field(default_factory=utc_now)


__all__ = ["CACHE_ROW_ID", "CachedDocument"]
