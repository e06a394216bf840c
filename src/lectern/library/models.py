"""Data models for the book library."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

# Fields that hold local binary payloads; never serialized, never merged.
LOCAL_ONLY_BOOK_FIELDS = ("file_blob", "cover_blob")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Book:
    id: str
    title: str
    author: str = "Unknown"
    format: str = ""  # epub, pdf
    file_name: str = ""
    file_path: Optional[str] = None  # relative path on the server
    file_size: int = 0
    cover: Optional[str] = None  # cover reference, not the image itself
    status: str = "unread"
    progress: float = 0.0  # 0 - 100
    current_position: str = ""  # CFI for EPUB, page number for PDF
    total_pages: Optional[int] = None
    current_page: Optional[int] = None
    rating: Optional[int] = None
    categories: list[str] = field(default_factory=list)
    is_favorite: bool = False
    is_on_server: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
    added_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    last_read_at: Optional[datetime] = None
    file_blob: Optional[bytes] = field(default=None, repr=False)
    cover_blob: Optional[bytes] = field(default=None, repr=False)

    def touch(self, when: Optional[datetime] = None) -> None:
        """Record a local metadata edit."""
        when = when or utcnow()
        if self.updated_at is None or when > self.updated_at:
            self.updated_at = when

    def mark_read(self, when: Optional[datetime] = None) -> None:
        when = when or utcnow()
        if self.last_read_at is None or when > self.last_read_at:
            self.last_read_at = when


@dataclass
class Tag:
    id: str
    name: str
    color: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def touch(self, when: Optional[datetime] = None) -> None:
        when = when or utcnow()
        if self.updated_at is None or when > self.updated_at:
            self.updated_at = when


@dataclass
class Annotation:
    id: str
    book_id: str
    cfi: str = ""  # location in book
    text: str = ""  # highlighted text
    note: Optional[str] = None
    color: str = "yellow"
    chapter_title: Optional[str] = None
    chapter_index: Optional[int] = None
    page_number: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def touch(self, when: Optional[datetime] = None) -> None:
        when = when or utcnow()
        if self.updated_at is None or when > self.updated_at:
            self.updated_at = when

    def mark_deleted(self, when: Optional[datetime] = None) -> None:
        """Tombstone the annotation so the deletion can replicate."""
        when = when or utcnow()
        self.deleted_at = when
        self.touch(when)


@dataclass
class ReadingSession:
    id: str
    book_id: str
    start_time: datetime
    end_time: datetime
    pages_read: int = 0
    start_position: str = ""
    end_position: str = ""

    @property
    def duration(self) -> float:
        """Session length in seconds."""
        return max(0.0, (self.end_time - self.start_time).total_seconds())


@dataclass
class LibrarySnapshot:
    """One replica's full state, as pulled from or pushed to the remote."""

    books: list[Book] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    annotations: list[Annotation] = field(default_factory=list)
    reading_sessions: list[ReadingSession] = field(default_factory=list)
    last_sync: Optional[datetime] = None

    @property
    def is_uninitialized(self) -> bool:
        return not self.books and not self.tags
