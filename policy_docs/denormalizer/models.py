"""
Policy Doc Records

Typed views of the documents the denormalizer reads and writes. Documents
are stored as JSON objects with snake_case keys; timestamps are ISO 8601
strings in the store and timezone-aware datetimes in Python.

Deserialization is lenient about missing keys (they take the zero value of
their type) and strict about wrong types, which signal upstream data
corruption.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional

# Fractional seconds of any precision, e.g. nanosecond RFC 3339 timestamps
_FRACTION_RE = re.compile(r"([Tt ]\d{2}:\d{2}:\d{2})\.(\d+)")


class DeserializationError(Exception):
    """Raised when a stored document does not match the expected shape."""

    retryable = False

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{message} (document: {path})"
        super().__init__(message)


def _require_mapping(data: Any, record: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise DeserializationError(
            f"{record} document must be an object, got {type(data).__name__}"
        )
    return data


def _string_field(data: Mapping[str, Any], key: str, record: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DeserializationError(
            f"{record}.{key} must be a string, got {type(value).__name__}"
        )
    return value


def _bool_field(data: Mapping[str, Any], key: str, record: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise DeserializationError(
            f"{record}.{key} must be a boolean, got {type(value).__name__}"
        )
    return value


def _normalize_iso(value: str) -> str:
    # fromisoformat() before Python 3.11 rejects a trailing Z and fractions
    # that are not 3 or 6 digits long
    value = _FRACTION_RE.sub(
        lambda m: f"{m.group(1)}.{(m.group(2) + '00000')[:6]}", value, count=1
    )
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return value


def _timestamp_field(data: Mapping[str, Any], key: str, record: str) -> Optional[datetime]:
    value = data.get(key)
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(_normalize_iso(value))
        except ValueError as e:
            raise DeserializationError(
                f"{record}.{key} is not an ISO 8601 timestamp: {value!r}"
            ) from e
    else:
        raise DeserializationError(
            f"{record}.{key} must be a timestamp, got {type(value).__name__}"
        )

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _timestamp_value(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Hostname:
    """Existence/verification marker of a hostname."""

    verified: bool = False

    @classmethod
    def from_document(cls, data: Any) -> "Hostname":
        data = _require_mapping(data, "Hostname")
        return cls(verified=_bool_field(data, "verified", "Hostname"))

    def to_document(self) -> dict[str, Any]:
        return {"verified": self.verified}


@dataclass(frozen=True)
class HostnameMetadata:
    """Identity and placement metadata of a hostname."""

    hostname: str = ""
    zone: str = ""
    site_id: str = ""
    site_env: str = ""
    created: Optional[datetime] = None
    updated: Optional[datetime] = None

    @classmethod
    def from_document(cls, data: Any) -> "HostnameMetadata":
        data = _require_mapping(data, "HostnameMetadata")
        return cls(
            hostname=_string_field(data, "hostname", "HostnameMetadata"),
            zone=_string_field(data, "zone", "HostnameMetadata"),
            site_id=_string_field(data, "site_id", "HostnameMetadata"),
            site_env=_string_field(data, "site_env", "HostnameMetadata"),
            created=_timestamp_field(data, "created", "HostnameMetadata"),
            updated=_timestamp_field(data, "updated", "HostnameMetadata"),
        )

    def to_document(self) -> dict[str, Any]:
        doc = asdict(self)
        doc["created"] = _timestamp_value(self.created)
        doc["updated"] = _timestamp_value(self.updated)
        return doc


@dataclass(frozen=True)
class EdgeLogic:
    """Routing and policy rules of a hostname."""

    redirect_to: str = ""
    enforce_https: str = ""
    cache_control: str = ""
    backend: str = ""
    build_id: str = ""
    jurisdiction: str = ""
    created: Optional[datetime] = None
    updated: Optional[datetime] = None

    @classmethod
    def from_document(cls, data: Any) -> "EdgeLogic":
        data = _require_mapping(data, "EdgeLogic")
        return cls(
            redirect_to=_string_field(data, "redirect_to", "EdgeLogic"),
            enforce_https=_string_field(data, "enforce_https", "EdgeLogic"),
            cache_control=_string_field(data, "cache_control", "EdgeLogic"),
            backend=_string_field(data, "backend", "EdgeLogic"),
            build_id=_string_field(data, "build_id", "EdgeLogic"),
            jurisdiction=_string_field(data, "jurisdiction", "EdgeLogic"),
            created=_timestamp_field(data, "created", "EdgeLogic"),
            updated=_timestamp_field(data, "updated", "EdgeLogic"),
        )

    def to_document(self) -> dict[str, Any]:
        doc = asdict(self)
        doc["created"] = _timestamp_value(self.created)
        doc["updated"] = _timestamp_value(self.updated)
        return doc


@dataclass(frozen=True)
class Denormalized:
    """Flattened, read-optimized policy doc of one hostname."""

    hostname: str = ""
    zone: str = ""
    redirect_to: str = ""
    enforce_https: str = ""
    backend: str = ""
    build_id: str = ""
    jurisdiction: str = ""
    site_id: str = ""
    site_env: str = ""
    created: Optional[datetime] = None
    updated: Optional[datetime] = None

    def to_document(self) -> dict[str, Any]:
        doc = asdict(self)
        doc["created"] = _timestamp_value(self.created)
        doc["updated"] = _timestamp_value(self.updated)
        return doc


@dataclass(frozen=True)
class NormalizedDocs:
    """The three normalized records of a hostname, read from one snapshot."""

    hostname: Hostname
    metadata: HostnameMetadata
    edge_logic: EdgeLogic


__all__ = [
    "DeserializationError",
    "Denormalized",
    "EdgeLogic",
    "Hostname",
    "HostnameMetadata",
    "NormalizedDocs",
]
