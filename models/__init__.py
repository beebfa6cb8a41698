"""Data models exposed by the tracker core."""
from .cached_document import CachedDocument
from .document import Document, seed_document, validate_payload
from .pending_op import PendingOp

__all__ = ["CachedDocument", "Document", "PendingOp", "seed_document", "validate_payload"]
