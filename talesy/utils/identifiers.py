"""
Identifier normalisation.

Entity references reach the services in several encodings: ``uuid.UUID``
objects from the ORM, hex strings from URLs and JWT claims, raw 16-byte
buffers, and buffers wrapped in an envelope by JSON serialisers (Node's
``{"type": "Buffer", "data": [...]}``, extended JSON ``{"$uuid": ...}``).
Everything is reduced to ``uuid.UUID`` before it is compared or queried.
"""
import re
import uuid
from collections.abc import Mapping
from typing import Any, Optional

from talesy.exceptions import InvalidIdentifier

_BUFFER_TYPES = (bytes, bytearray, memoryview)
_ENVELOPE_KEYS = ("$uuid", "$oid", "id")
_UUID_TEXT = re.compile(
    r"[0-9a-fA-F]{32}|[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)


def _from_string(value: str) -> uuid.UUID:
    text = value.strip()
    if not text:
        raise InvalidIdentifier("Identifier is empty")
    # Only the bare 32-hex and the 8-4-4-4-12 hyphenated forms
    if not _UUID_TEXT.fullmatch(text):
        raise InvalidIdentifier(f"Invalid identifier: {value!r}")
    return uuid.UUID(text)


def _from_buffer(value: Any) -> uuid.UUID:
    raw = bytes(value)
    if len(raw) != 16:
        raise InvalidIdentifier(f"Identifier buffer must be 16 bytes, got {len(raw)}")
    return uuid.UUID(bytes=raw)


def _from_envelope(value: Mapping) -> uuid.UUID:
    if value.get("type") == "Buffer" and "data" in value:
        data = value["data"]
        if not isinstance(data, (list, tuple)):
            raise InvalidIdentifier("Buffer envelope data must be a list of bytes")
        try:
            return _from_buffer(bytearray(data))
        except (TypeError, ValueError) as e:
            if isinstance(e, InvalidIdentifier):
                raise
            raise InvalidIdentifier("Buffer envelope holds non-byte values") from e

    for key in _ENVELOPE_KEYS:
        if key in value:
            inner = value[key]
            if isinstance(inner, Mapping):
                raise InvalidIdentifier("Nested identifier envelopes are not supported")
            return to_uuid(inner)

    raise InvalidIdentifier("Unrecognised identifier envelope")


def to_uuid(value: Any) -> uuid.UUID:
    """Return the canonical identifier for ``value`` or raise InvalidIdentifier."""
    if isinstance(value, uuid.UUID):
        return value
    if value is None:
        raise InvalidIdentifier("Identifier is missing")
    if isinstance(value, str):
        return _from_string(value)
    if isinstance(value, _BUFFER_TYPES):
        return _from_buffer(value)
    if isinstance(value, Mapping):
        return _from_envelope(value)
    raise InvalidIdentifier(f"Unsupported identifier type: {type(value).__name__}")


def to_uuid_or_none(value: Any) -> Optional[uuid.UUID]:
    if value is None:
        return None
    return to_uuid(value)


def is_valid_id(value: Any) -> bool:
    try:
        to_uuid(value)
    except InvalidIdentifier:
        return False
    return True


def same_id(left: Any, right: Any) -> bool:
    """Compare two references after normalising both sides.

    Malformed values never compare equal to anything.
    """
    try:
        return to_uuid(left) == to_uuid(right)
    except InvalidIdentifier:
        return False
