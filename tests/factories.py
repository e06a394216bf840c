"""Record builders shared by the test modules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from lectern.library.models import Annotation, Book, ReadingSession, Tag

BASE = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """A whole-second timestamp ``minutes`` after a fixed base time."""
    return BASE + timedelta(minutes=minutes)


def make_book(
    book_id: str = "b1",
    title: str = "Test Book",
    updated: Optional[int] = None,
    last_read: Optional[int] = None,
    **kwargs,
) -> Book:
    kwargs.setdefault("file_name", f"{book_id}.epub")
    return Book(
        id=book_id,
        title=title,
        author=kwargs.pop("author", "Author"),
        format=kwargs.pop("format", "epub"),
        added_at=kwargs.pop("added_at", at(0)),
        updated_at=at(updated) if updated is not None else None,
        last_read_at=at(last_read) if last_read is not None else None,
        **kwargs,
    )


def make_tag(
    tag_id: str = "t1",
    name: str = "Ciencia",
    created: int = 0,
    updated: Optional[int] = None,
    color: str = "#00f",
) -> Tag:
    return Tag(
        id=tag_id,
        name=name,
        color=color,
        created_at=at(created),
        updated_at=at(updated) if updated is not None else None,
    )


def make_annotation(
    ann_id: str = "a1",
    book_id: str = "b1",
    updated: Optional[int] = 0,
    deleted: Optional[int] = None,
    note: Optional[str] = None,
) -> Annotation:
    return Annotation(
        id=ann_id,
        book_id=book_id,
        cfi="epubcfi(/6/4!/4/2)",
        text="highlighted",
        note=note,
        created_at=at(0),
        updated_at=at(updated) if updated is not None else None,
        deleted_at=at(deleted) if deleted is not None else None,
    )


def make_session(session_id: str = "s1", book_id: str = "b1") -> ReadingSession:
    return ReadingSession(
        id=session_id,
        book_id=book_id,
        start_time=at(0),
        end_time=at(30),
        pages_read=12,
        start_position="10",
        end_position="22",
    )
