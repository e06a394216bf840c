"""Conversion between wire dictionaries and library models.

Every timestamp crosses the wire as text, so records coming back from the
remote have to be re-hydrated into ``datetime`` values before any comparison.
"""

from __future__ import annotations

import logging
from dataclasses import MISSING, fields
from datetime import datetime, timezone
from typing import Any, Optional, TypeVar

from lectern.library.models import (
    LOCAL_ONLY_BOOK_FIELDS,
    Annotation,
    Book,
    LibrarySnapshot,
    ReadingSession,
    Tag,
)
from lectern.sync.errors import MalformedResponseError

log = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

T = TypeVar("T", Book, Tag, Annotation, ReadingSession)

# (optional date fields, required date fields)
_DATE_FIELDS: dict[type, tuple[tuple[str, ...], tuple[str, ...]]] = {
    Book: (("updated_at", "last_read_at"), ("added_at",)),
    Tag: (("updated_at",), ("created_at",)),
    Annotation: (("updated_at", "deleted_at"), ("created_at",)),
    ReadingSession: ((), ("start_time", "end_time")),
}

# (wire key, snapshot attribute, model)
_COLLECTIONS = (
    ("books", "books", Book),
    ("tags", "tags", Tag),
    ("annotations", "annotations", Annotation),
    ("readingSessions", "reading_sessions", ReadingSession),
)


def _from_epoch_ms(ms: float) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        log.warning("Epoch timestamp out of range: %r", ms)
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Turn a serialized time value into an aware ``datetime``.

    Accepts ISO-8601 text (``Z`` suffix included), epoch milliseconds as
    numbers or digit strings, and ``datetime`` objects. Naive values are
    taken as UTC. Unparseable input yields None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _from_epoch_ms(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return _from_epoch_ms(int(text))
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            log.warning("Unparseable timestamp %r", value)
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    log.warning("Unsupported timestamp type %s", type(value).__name__)
    return None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def merge_time(*values: Optional[datetime]) -> float:
    """Latest of the given timestamps as epoch milliseconds; missing counts as 0."""
    latest = 0.0
    for value in values:
        if value is not None:
            latest = max(latest, value.timestamp() * 1000.0)
    return latest


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def record_from_wire(cls: type[T], data: Any) -> T:
    """Build a model instance from one wire record, hydrating its dates."""
    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"Expected an object for {cls.__name__}, got {type(data).__name__}"
        )
    optional_dates, required_dates = _DATE_FIELDS[cls]
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if f.name in LOCAL_ONLY_BOOK_FIELDS:
            continue
        key = _camel(f.name)
        if key not in data:
            continue
        value = data[key]
        if f.name in optional_dates:
            value = parse_timestamp(value)
        elif f.name in required_dates:
            value = parse_timestamp(value) or EPOCH
        elif value is None and (
            f.default is not MISSING and f.default is not None
            or f.default_factory is not MISSING
        ):
            continue
        kwargs[f.name] = value
    for name in required_dates:
        kwargs.setdefault(name, EPOCH)
    try:
        record = cls(**kwargs)
    except TypeError as e:
        raise MalformedResponseError(
            f"Incomplete {cls.__name__} record: {e}"
        ) from e
    if not record.id:
        raise MalformedResponseError(f"{cls.__name__} record without an id")
    return record


def record_to_wire(record: Any) -> dict[str, Any]:
    """Serialize a model instance; binary book fields are always dropped."""
    out: dict[str, Any] = {}
    for f in fields(record):
        if f.name in LOCAL_ONLY_BOOK_FIELDS:
            continue
        value = getattr(record, f.name)
        if isinstance(value, datetime):
            value = format_timestamp(value)
        elif isinstance(value, (list, dict)):
            value = value.copy()
        out[_camel(f.name)] = value
    return out


def snapshot_from_wire(data: Any) -> LibrarySnapshot:
    """Hydrate a pulled snapshot. Missing collections count as empty."""
    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"Expected a snapshot object, got {type(data).__name__}"
        )
    snapshot = LibrarySnapshot(last_sync=parse_timestamp(data.get("lastSync")))
    for key, attr, cls in _COLLECTIONS:
        items = data.get(key) or []
        if not isinstance(items, list):
            raise MalformedResponseError(f"'{key}' is not a list")
        setattr(snapshot, attr, [record_from_wire(cls, item) for item in items])
    return snapshot


def snapshot_to_wire(snapshot: LibrarySnapshot) -> dict[str, Any]:
    out: dict[str, Any] = {
        key: [record_to_wire(r) for r in getattr(snapshot, attr)]
        for key, attr, _ in _COLLECTIONS
    }
    out["lastSync"] = format_timestamp(snapshot.last_sync)
    return out
