"""
Foreign-key reference normalization.

The web and mobile clients do not always send a bare id back to the server.
A reference may arrive as:

* IdRef          a bare id string ("0b5f...-...") or uuid.UUID
* EmbeddedRef    a populated object ({"id": ..., "name": ...}, {"_id": ...}) or ORM row
* SerializedRef  a stringified object, e.g. JSON, or the repr() of a dict holding
                 a uuid.UUID: "{'_id': UUID('0b5f...'), 'name': 'Hotel'}"

`normalize_reference` reduces any of these to the canonical lowercase
hyphenated id string, or None when nothing id-shaped can be found.
"""
import json
import re
import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union


UUID_PATTERN = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"

_CANONICAL_RE = re.compile(rf"^{UUID_PATTERN}$")
_WRAPPED_RE = re.compile(rf"UUID\(\s*['\"]({UUID_PATTERN})['\"]\s*\)")
_ANYWHERE_RE = re.compile(UUID_PATTERN)

# Populated objects can nest ({"_id": {"id": ...}}); stop after this many levels
_MAX_DEPTH = 4


@dataclass(frozen=True)
class IdRef:
    value: str


@dataclass(frozen=True)
class EmbeddedRef:
    value: Mapping[str, Any]


@dataclass(frozen=True)
class SerializedRef:
    value: str


Reference = Union[IdRef, EmbeddedRef, SerializedRef]


def is_canonical_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_CANONICAL_RE.match(value))


def classify(raw: Any) -> Optional[Reference]:
    """Tag a raw reference with its shape. Returns None for empty values."""
    if raw is None:
        return None
    if isinstance(raw, uuid.UUID):
        return IdRef(str(raw))
    if isinstance(raw, Mapping):
        return EmbeddedRef(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if is_canonical_id(text):
            return IdRef(text)
        return SerializedRef(text)
    ident = getattr(raw, "id", None)
    if ident is not None:
        return EmbeddedRef({"id": ident})
    return SerializedRef(str(raw))


def normalize_reference(raw: Any) -> Optional[str]:
    return _normalize(raw, 0)


def _normalize(raw: Any, depth: int) -> Optional[str]:
    ref = classify(raw)
    if isinstance(ref, IdRef):
        return str(uuid.UUID(ref.value))
    if isinstance(ref, EmbeddedRef):
        return _from_embedded(ref.value, depth)
    if isinstance(ref, SerializedRef):
        return _from_serialized(ref.value, depth)
    return None


def _from_embedded(obj: Mapping[str, Any], depth: int) -> Optional[str]:
    if depth >= _MAX_DEPTH:
        return None
    for key in ("_id", "id"):
        if key in obj:
            found = _normalize(obj[key], depth + 1)
            if found:
                return found
    return None


def _from_serialized(text: str, depth: int) -> Optional[str]:
    if text.startswith("{") and depth < _MAX_DEPTH:
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, Mapping):
            found = _from_embedded(parsed, depth + 1)
            if found:
                return found
    # Best effort: naive stringification of an object holding a UUID wrapper,
    # then any id-shaped substring at all.
    match = _WRAPPED_RE.search(text)
    if match:
        return str(uuid.UUID(match.group(1)))
    match = _ANYWHERE_RE.search(text)
    if match:
        return str(uuid.UUID(match.group(0)))
    return None


def to_uuid(raw: Any) -> Optional[uuid.UUID]:
    """Normalize and convert to uuid.UUID for store lookups."""
    canonical = normalize_reference(raw)
    return uuid.UUID(canonical) if canonical else None
