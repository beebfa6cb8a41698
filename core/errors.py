"""Exception hierarchy shared by the sync layer."""
from __future__ import annotations

from typing import Optional


class TrackerError(Exception):
    """Base class for every error raised by the tracker core."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class SyncError(TrackerError):
    """Failure reported by the remote document store."""

    # Whether a later attempt may succeed without user action.
    transient = False


class AuthError(SyncError):
    """Credential rejected or expired; sync stays blocked until reconfigured."""


class NotFoundError(SyncError):
    """Repository, branch or owner does not resolve."""


class ConflictError(SyncError):
    """Version token no longer matches the remote document."""

    transient = True


class NetworkError(SyncError):
    """Timeout, connection failure or server-side error."""

    transient = True


class CodecError(TrackerError):
    """Transport payload could not be decoded."""


class ValidationError(TrackerError):
    """Document or record failed structural validation."""


class StorageError(TrackerError):
    """Local persistence failed (disk full, database locked...)."""


__all__ = [
    "AuthError",
    "CodecError",
    "ConflictError",
    "NetworkError",
    "NotFoundError",
    "StorageError",
    "SyncError",
    "TrackerError",
    "ValidationError",
]
