"""Base64-over-UTF-8 JSON envelope used by the contents API."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict

from core.errors import CodecError, ValidationError
from models.document import Document


def encode_payload(payload: Dict[str, Any]) -> bytes:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    return base64.b64encode(text.encode("utf-8"))


def decode_payload(data: bytes | str) -> Dict[str, Any]:
    """Decode an envelope into a raw dictionary without shape checks."""

    if isinstance(data, str):
        try:
            data = data.encode("ascii")
        except UnicodeEncodeError as exc:
            raise CodecError("Envelope contains non-ASCII characters") from exc
    # The API wraps base64 content at 60 columns.
    compact = b"".join(data.split())
    if not compact:
        raise CodecError("Envelope is empty")
    try:
        raw = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CodecError(f"Malformed base64 envelope: {exc}") from exc
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CodecError(f"Envelope is not valid UTF-8: {exc}") from exc
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CodecError(f"Envelope does not contain valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise CodecError("Envelope root must be a JSON object")
    return payload


def encode(document: Document) -> bytes:
    return encode_payload(document.to_dict())


def decode(data: bytes | str) -> Document:
    try:
        return Document.from_dict(decode_payload(data))
    except ValidationError as exc:
        raise CodecError(str(exc)) from exc


__all__ = ["decode", "decode_payload", "encode", "encode_payload"]
