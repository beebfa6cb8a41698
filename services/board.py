"""Record-level operations on the tracker document.

Every function mutates the given :class:`~models.document.Document` in place
and takes the acting user explicitly, so the functions can be handed to
:meth:`services.tracker.Tracker.mutate` as-is (via ``functools.partial`` or a
lambda).
"""
from __future__ import annotations

import random
import string
from typing import Any, Dict, List, Optional

from core.errors import ValidationError
from core.statuses import (
    REQUEST_DECISIONS,
    REQUEST_PENDING,
    REQUEST_TYPES,
    is_resolved,
    normalize_priority,
    normalize_status,
)
from datetime_utils import epoch_millis, timestamp_key, to_iso
from models.document import Document


_ID_ALPHABET = string.ascii_lowercase + string.digits

TASK_FIELDS = (
    "projectName",
    "taskName",
    "description",
    "assignee",
    "planDateFrom",
    "planDateTo",
    "actualDateFrom",
    "actualDateTo",
    "planningStatus",
    "actualStatus",
    "priority",
)
_REQUIRED_TASK_FIELDS = ("projectName", "taskName", "assignee", "planDateFrom", "planDateTo")


def generate_id() -> str:
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"{epoch_millis()}-{suffix}"


def log_history(
    doc: Document,
    task_id: Optional[str],
    actor_id: Any,
    action: str,
    changes: Optional[Dict[str, Any]],
    reason: str,
) -> Dict[str, Any]:
    entry = {
        "id": generate_id(),
        "taskId": task_id,
        "userId": actor_id,
        "action": action,
        "timestamp": to_iso(),
        "changes": changes,
        "reason": reason,
    }
    doc.history.append(entry)
    return entry


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def create_task(doc: Document, *, actor_id: Any, reason: str, **fields: Any) -> Dict[str, Any]:
    unknown = set(fields) - set(TASK_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")
    values = {name: _clean(fields.get(name)) for name in TASK_FIELDS}
    missing = [name for name in _REQUIRED_TASK_FIELDS if values.get(name) is None]
    if not (reason or "").strip():
        missing.append("reason")
    if missing:
        raise ValidationError(f"Please fill all required fields: {', '.join(missing)}")

    now = to_iso()
    task = dict(values)
    task.update(
        {
            "id": generate_id(),
            "description": values["description"] or "",
            "planningStatus": normalize_status(values["planningStatus"] or "today", planning=True),
            "actualStatus": normalize_status(values["actualStatus"]),
            "priority": normalize_priority(values["priority"]),
            "createdAt": now,
            "createdBy": actor_id,
            "updatedAt": now,
        }
    )
    doc.tasks.append(task)
    log_history(doc, task["id"], actor_id, "created", None, reason.strip())
    return task


def update_task(
    doc: Document,
    task_id: str,
    changes: Dict[str, Any],
    *,
    actor_id: Any,
    reason: str,
) -> List[Dict[str, Any]]:
    """Apply ``changes`` and log one history entry per modified field."""

    if not (reason or "").strip():
        raise ValidationError("Please provide a reason for the update")
    task = doc.find_task(task_id)
    if task is None:
        raise ValidationError(f"Task {task_id!r} does not exist")
    unknown = set(changes) - set(TASK_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")

    deltas: List[Dict[str, Any]] = []
    for name in TASK_FIELDS:
        if name not in changes:
            continue
        new_value = _clean(changes[name])
        if name == "priority":
            new_value = normalize_priority(new_value)
        if task.get(name) != new_value:
            deltas.append({"field": name, "oldValue": task.get(name), "newValue": new_value})
            task[name] = new_value

    if not deltas:
        return []
    task["updatedAt"] = to_iso()
    for delta in deltas:
        log_history(doc, task_id, actor_id, "updated", delta, reason.strip())
    return deltas


def create_request(
    doc: Document,
    *,
    actor_id: Any,
    request_type: str,
    customer_info: str,
    description: str,
    task_id: Optional[str] = None,
) -> Dict[str, Any]:
    if not (request_type and (customer_info or "").strip() and (description or "").strip()):
        raise ValidationError("Please fill all required fields")
    if request_type not in REQUEST_TYPES:
        raise ValidationError(f"Unsupported request type: {request_type!r}")
    if task_id and doc.find_task(task_id) is None:
        raise ValidationError(f"Task {task_id!r} does not exist")
    request = {
        "id": generate_id(),
        "taskId": task_id or None,
        "requestType": request_type,
        "requestedBy": actor_id,
        "requestedAt": to_iso(),
        "customerInfo": customer_info.strip(),
        "description": description.strip(),
        "status": REQUEST_PENDING,
        "reviewedBy": None,
        "reviewedAt": None,
        "reviewNote": None,
    }
    doc.requests.append(request)
    return request


def review_request(
    doc: Document,
    request_id: str,
    decision: str,
    *,
    actor_id: Any,
    note: Optional[str] = None,
) -> Dict[str, Any]:
    """Resolve a pending request; resolved requests never change again."""

    if decision not in REQUEST_DECISIONS:
        raise ValidationError(f"Unsupported decision: {decision!r}")
    request = doc.find_request(request_id)
    if request is None:
        raise ValidationError(f"Request {request_id!r} does not exist")
    if is_resolved(request.get("status")):
        raise ValidationError(f"Request {request_id!r} is already {request['status']}")
    request["status"] = decision
    request["reviewedBy"] = actor_id
    request["reviewedAt"] = to_iso()
    request["reviewNote"] = note
    return request


def task_history(doc: Document, task_id: str) -> List[Dict[str, Any]]:
    entries = [e for e in doc.history if e.get("taskId") == task_id]
    return sorted(entries, key=lambda e: timestamp_key(e.get("timestamp")), reverse=True)


__all__ = [
    "TASK_FIELDS",
    "create_request",
    "create_task",
    "generate_id",
    "log_history",
    "review_request",
    "task_history",
    "update_task",
]
