"""Lifecycle values used by tasks and change requests."""
from __future__ import annotations

from typing import Dict

# Planning axis carries an extra ``today`` marker ahead of the regular lifecycle.
PLANNING_STATUSES = ("today", "todo", "in-progress", "done")
ACTUAL_STATUSES = ("todo", "in-progress", "done")

PRIORITIES = ("normal", "critical", "blocked")
DEFAULT_PRIORITY = "normal"

REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"
REQUEST_REJECTED = "rejected"
REQUEST_DECISIONS = (REQUEST_APPROVED, REQUEST_REJECTED)

REQUEST_TYPES: Dict[str, str] = {
    "new-task": "New Task",
    "change-date": "Change Date",
    "change-priority": "Change Priority",
    "customer-issue": "Customer Issue",
    "other": "Other",
}


def normalize_priority(value: str | None) -> str:
    """Map external values onto the supported priorities."""
    if value is None:
        return DEFAULT_PRIORITY
    candidate = str(value).strip().lower()
    return candidate if candidate in PRIORITIES else DEFAULT_PRIORITY


def normalize_status(value: str | None, *, planning: bool = False) -> str:
    allowed = PLANNING_STATUSES if planning else ACTUAL_STATUSES
    candidate = (value or "").strip().lower()
    if candidate in allowed:
        return candidate
    # Legacy rows stored ``today`` on the actual axis too.
    if candidate == "today":
        return "todo"
    return allowed[0]


def is_resolved(request_status: str | None) -> bool:
    return request_status in REQUEST_DECISIONS
