"""In-memory representation of the shared tracker document."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.errors import ValidationError
from core.settings import DOCUMENT_SCHEMA_VERSION, SEED_USERS
from datetime_utils import to_iso


REQUIRED_FIELDS = ("version", "users", "tasks", "requests", "history")
_COLLECTIONS = ("users", "tasks", "requests", "history")
_KNOWN_FIELDS = set(REQUIRED_FIELDS) | {"lastUpdated"}


@dataclass
class Document:
    """Root aggregate: roster, tasks, change requests and the audit log."""

    version: str = DOCUMENT_SCHEMA_VERSION
    last_updated: Optional[str] = None
    users: List[Dict[str, Any]] = field(default_factory=list)
    tasks: List[Dict[str, Any]] = field(default_factory=list)
    requests: List[Dict[str, Any]] = field(default_factory=list)
    history: List[Dict[str, Any]] = field(default_factory=list)
    # Unknown top-level keys survive a load/save cycle untouched.
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Document":
        if not isinstance(payload, dict):
            raise ValidationError("Document payload must be a JSON object")
        data = deepcopy(payload)
        return cls(
            version=str(data.get("version") or DOCUMENT_SCHEMA_VERSION),
            last_updated=data.get("lastUpdated"),
            users=list(data.get("users") or []),
            tasks=list(data.get("tasks") or []),
            requests=list(data.get("requests") or []),
            history=list(data.get("history") or []),
            extra={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "version": self.version,
            "lastUpdated": self.last_updated,
            "users": deepcopy(self.users),
            "tasks": deepcopy(self.tasks),
            "requests": deepcopy(self.requests),
            "history": deepcopy(self.history),
        }
        for key, value in self.extra.items():
            payload.setdefault(key, deepcopy(value))
        return payload

    def copy(self) -> "Document":
        return deepcopy(self)

    # ----- lookups -----
    def find_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        return next((t for t in self.tasks if t.get("id") == task_id), None)

    def find_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        return next((r for r in self.requests if r.get("id") == request_id), None)

    def find_user(self, user_id: Any) -> Optional[Dict[str, Any]]:
        return next((u for u in self.users if u.get("id") == user_id), None)


def validate_payload(payload: Any) -> Dict[str, Any]:
    """Check the top-level shape of an imported or remote payload."""

    if not isinstance(payload, dict):
        raise ValidationError("Invalid data structure: expected a JSON object")
    missing = [name for name in REQUIRED_FIELDS if name not in payload]
    if missing:
        raise ValidationError(f"Invalid data structure: missing {', '.join(missing)}")
    if not payload.get("version"):
        raise ValidationError("Invalid data structure: empty version")
    wrong = [name for name in _COLLECTIONS if not isinstance(payload.get(name), list)]
    if wrong:
        raise ValidationError(f"Invalid data structure: {', '.join(wrong)} must be lists")
    return payload


def seed_document(now: Optional[datetime] = None) -> Document:
    """Document returned when nothing has been persisted remotely yet."""

    return Document(
        version=DOCUMENT_SCHEMA_VERSION,
        last_updated=to_iso(now),
        users=[dict(user) for user in SEED_USERS],
        tasks=[],
        requests=[],
        history=[],
    )


__all__ = ["Document", "REQUIRED_FIELDS", "seed_document", "validate_payload"]
