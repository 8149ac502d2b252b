from __future__ import annotations
"""Data models describing stored objects and listings."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Optional

from .paths import SEPARATOR, dirname, normalize_key


class Visibility(str, Enum):
    """Access flag attached to an object at upload time."""

    PUBLIC = "public"
    PRIVATE = "private"

    @classmethod
    def coerce(cls, value: "Visibility | str | None") -> "Visibility":
        if value is None:
            return cls.PRIVATE
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"visibility must be 'public' or 'private', got {value!r}") from None


class EntryType(str, Enum):
    FILE = "file"
    DIR = "dir"


def parse_timestamp(value: object) -> Optional[int]:
    """Convert an API date value into epoch seconds.

    Accepts ISO-8601 strings (with or without a ``Z`` suffix), RFC 1123 dates as
    used in HTTP headers, datetimes and plain numbers. Naive values are treated
    as UTC. Returns ``None`` for empty or unparseable input.
    """

    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.isdigit():
            return int(text)
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError):
                return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def _as_size(value: object) -> int:
    try:
        return max(int(value), 0)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata about a single stored object."""

    key: str
    size: int = 0
    last_modified: Optional[int] = None
    is_directory: bool = False
    content_type: Optional[str] = None

    @classmethod
    def from_api(cls, payload: dict[str, Any], *, key: str | None = None) -> "ObjectMetadata":
        raw_key = payload.get("key") or payload.get("Key") or key or ""
        size = _as_size(payload.get("size", payload.get("Size")))
        explicit_dir = bool(payload.get("isDirectory") or payload.get("isDir"))
        return cls(
            key=normalize_key(raw_key),
            size=size,
            last_modified=parse_timestamp(payload.get("lastModified", payload.get("LastModified"))),
            is_directory=explicit_dir or (size == 0 and str(raw_key).endswith(SEPARATOR)),
            content_type=payload.get("contentType") or payload.get("ContentType") or None,
        )

    @classmethod
    def directory(cls, key: str) -> "ObjectMetadata":
        """Synthesize metadata for a directory implied by its children."""

        return cls(key=normalize_key(key), size=0, is_directory=True)


@dataclass
class ListingPage:
    """A single page returned by the list endpoint."""

    objects: list[ObjectMetadata] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
    continuation_token: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return bool(self.continuation_token)


@dataclass(frozen=True)
class ListingEntry:
    """A normalized entry produced by directory listings."""

    type: EntryType
    path: str
    dirname: str = ""
    size: int = 0
    timestamp: Optional[int] = None

    @property
    def is_dir(self) -> bool:
        return self.type is EntryType.DIR

    @classmethod
    def from_metadata(cls, metadata: ObjectMetadata) -> "ListingEntry":
        path = normalize_key(metadata.key)
        return cls(
            type=EntryType.DIR if metadata.is_directory else EntryType.FILE,
            path=path,
            dirname=dirname(path),
            size=0 if metadata.is_directory else metadata.size,
            timestamp=metadata.last_modified,
        )

    @classmethod
    def for_directory(cls, path: str) -> "ListingEntry":
        cleaned = normalize_key(path)
        return cls(type=EntryType.DIR, path=cleaned, dirname=dirname(cleaned))


@dataclass(frozen=True)
class WriteResult:
    """Acknowledgment returned by uploads."""

    key: str
    size: Optional[int]
    visibility: Visibility = Visibility.PRIVATE
