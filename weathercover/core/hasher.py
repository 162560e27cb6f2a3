"""
Canonical JSON and SHA-256 digests for the call journal.

A journal event hash covers the canonical form of its payload, chained to
the previous event's hash. The canonical form must never drift for a given
SERIALIZATION_VERSION:

- every output carries "__canon_v"
- object keys are strings, sorted at every depth
- None values are dropped, empty containers are kept
- enums serialize as their value
- integers, booleans and strings pass through
- floats are rejected; amounts, heights and readings are integers
- tuples become lists; sets and other types are rejected
- UUIDs are lowercase strings
- datetimes must be timezone-aware and render as UTC with microseconds and "Z"
- output is compact ASCII JSON
"""

import hashlib
import hmac
import json
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID

_HEX_DIGEST = re.compile(r"[0-9a-f]{64}")


class CanonicalSerializationError(Exception):
    """Value has no deterministic canonical form."""


def _fail(path: str, reason: str) -> CanonicalSerializationError:
    return CanonicalSerializationError(f"{reason} (at {path or '<root>'})")


def _utc_stamp(value: datetime, path: str) -> str:
    if value.tzinfo is None:
        raise _fail(path, "Datetime is timezone-naive; attach a timezone before hashing")
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S") + f".{value.microsecond:06d}Z"


def _normalize(value: Any, path: str) -> Any:
    # Enums first: str and int enums also pass the scalar checks below.
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        raise _fail(path, "Floats are banned in canonical payloads; use integer units")
    if isinstance(value, UUID):
        return str(value).lower()
    if isinstance(value, datetime):
        return _utc_stamp(value, path)
    if isinstance(value, (list, tuple)):
        return [_normalize(item, f"{path}[{i}]") for i, item in enumerate(value)]
    if isinstance(value, dict):
        return _normalize_mapping(value, path)
    if hasattr(value, "model_dump"):
        return _normalize_mapping(value.model_dump(mode="python"), path)
    raise _fail(path, f"{type(value).__name__} has no canonical form")


def _normalize_mapping(data: dict, path: str) -> dict:
    out = {}
    for key, item in data.items():
        if not isinstance(key, str):
            raise _fail(path, f"Object keys must be strings, got {type(key).__name__}")
        normalized = _normalize(item, f"{path}.{key}" if path else key)
        if normalized is not None:
            out[key] = normalized
    return out


class Hasher:
    """
    Canonical serialization and the journal's hash chain.

    Genesis events hash SHA256(canonical); every later event hashes
    SHA256(previous_hash + ":" + canonical).
    """

    SERIALIZATION_VERSION = 1

    @classmethod
    def canonicalize(cls, data: Any) -> str:
        if hasattr(data, "model_dump"):
            data = data.model_dump(mode="python")
        if not isinstance(data, dict):
            raise CanonicalSerializationError(
                f"Top-level value must be an object, got {type(data).__name__}"
            )
        body = {"__canon_v": cls.SERIALIZATION_VERSION, **_normalize_mapping(data, "")}
        return json.dumps(
            body,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=True,
            allow_nan=False,
        )

    @classmethod
    def hash_data(cls, data: Any) -> str:
        return cls.hash_bytes(cls.canonicalize(data).encode("utf-8"))

    @staticmethod
    def hash_bytes(raw: bytes) -> str:
        return hashlib.sha256(raw).hexdigest()

    @classmethod
    def hash_event(cls, payload: dict, previous_hash: Optional[str] = None) -> str:
        """
        Chain a payload onto the previous event hash.

        Raises:
            CanonicalSerializationError: payload has no canonical form, or
                previous_hash is not a 64-character hex digest
        """
        canonical = cls.canonicalize(payload)
        if previous_hash is None:
            return cls.hash_bytes(canonical.encode("utf-8"))

        previous = previous_hash.lower()
        if not _HEX_DIGEST.fullmatch(previous):
            raise CanonicalSerializationError(
                f"Invalid previous_hash {previous_hash!r}: expected 64 hex characters"
            )
        return cls.hash_bytes(f"{previous}:{canonical}".encode("utf-8"))

    @classmethod
    def verify_chain(
        cls,
        payload: dict,
        expected_hash: str,
        previous_hash: Optional[str] = None,
    ) -> bool:
        try:
            computed = cls.hash_event(payload, previous_hash)
        except CanonicalSerializationError:
            return False
        return hmac.compare_digest(computed, expected_hash.lower())
