"""Conflict resolution between a remote document and a locally pending one."""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, Hashable, Iterable, List

from datetime_utils import timestamp_key, to_iso
from models.document import Document


def merge_records(
    remote: Iterable[Dict[str, Any]],
    local: Iterable[Dict[str, Any]],
    id_field: str = "id",
) -> List[Dict[str, Any]]:
    """Merge two record lists by id; local wins, remote-only ids survive.

    Remote order is kept, a local record replaces its remote twin in place,
    and ids only present locally are appended in local order.
    """

    merged: Dict[Hashable, Dict[str, Any]] = {}
    anonymous: List[Dict[str, Any]] = []
    for item in remote:
        key = item.get(id_field)
        if key is None:
            anonymous.append(deepcopy(item))
        else:
            merged[key] = deepcopy(item)
    for item in local:
        key = item.get(id_field)
        if key is None:
            anonymous.append(deepcopy(item))
        else:
            merged[key] = deepcopy(item)
    return list(merged.values()) + anonymous


def _history_key(entry: Dict[str, Any]) -> Hashable:
    entry_id = entry.get("id")
    if entry_id is not None:
        return ("id", entry_id)
    # Entries without an id fall back to their content.
    return (
        "content",
        entry.get("timestamp"),
        entry.get("taskId"),
        entry.get("userId"),
        entry.get("action"),
        entry.get("reason"),
    )


def merge_history(
    remote: Iterable[Dict[str, Any]],
    local: Iterable[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Union of both audit logs, deduplicated by id, newest first."""

    seen: Dict[Hashable, Dict[str, Any]] = {}
    for entry in list(remote) + list(local):
        key = _history_key(entry)
        if key not in seen:
            seen[key] = deepcopy(entry)
    return sorted(seen.values(), key=lambda e: timestamp_key(e.get("timestamp")), reverse=True)


def merge_documents(remote: Document, local: Document) -> Document:
    """Build the document written after losing an optimistic-concurrency race."""

    extra = deepcopy(remote.extra)
    extra.update(deepcopy(local.extra))
    return Document(
        version=local.version or remote.version,
        last_updated=to_iso(),
        users=deepcopy(remote.users),
        tasks=merge_records(remote.tasks, local.tasks),
        requests=merge_records(remote.requests, local.requests),
        history=merge_history(remote.history, local.history),
        extra=extra,
    )


__all__ = ["merge_documents", "merge_history", "merge_records"]
