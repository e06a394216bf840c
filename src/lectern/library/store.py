"""Store interface consumed by the sync engine, plus an in-memory implementation."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from lectern.library.models import (
    Annotation,
    Book,
    LibrarySnapshot,
    ReadingSession,
    Tag,
    utcnow,
)


class LibraryStore(ABC):
    """Keyed collections for the four synced entity kinds.

    Methods are synchronous. The sync engine calls them from its coroutines
    without awaiting, so a disk-backed store blocks the event loop for the
    duration of each call. Local SQLite operations are short enough for that
    to be acceptable in a single-user client.
    """

    # ── Books ──────────────────────────────────────────────

    @abstractmethod
    def get_book(self, book_id: str) -> Optional[Book]: ...

    @abstractmethod
    def get_book_by_file_name(self, file_name: str) -> Optional[Book]: ...

    @abstractmethod
    def put_book(self, book: Book) -> None: ...

    @abstractmethod
    def delete_book(self, book_id: str) -> None: ...

    @abstractmethod
    def list_books(self) -> list[Book]: ...

    # ── Tags ───────────────────────────────────────────────

    @abstractmethod
    def get_tag(self, tag_id: str) -> Optional[Tag]: ...

    @abstractmethod
    def get_tag_by_name(self, name: str) -> Optional[Tag]: ...

    @abstractmethod
    def put_tag(self, tag: Tag) -> None: ...

    @abstractmethod
    def delete_tag(self, tag_id: str) -> None: ...

    @abstractmethod
    def list_tags(self) -> list[Tag]: ...

    # ── Annotations ────────────────────────────────────────

    @abstractmethod
    def get_annotation(self, annotation_id: str) -> Optional[Annotation]: ...

    @abstractmethod
    def put_annotation(self, annotation: Annotation) -> None: ...

    @abstractmethod
    def list_annotations(
        self, book_id: Optional[str] = None, include_deleted: bool = False
    ) -> list[Annotation]: ...

    # ── Reading Sessions ───────────────────────────────────

    @abstractmethod
    def get_reading_session(self, session_id: str) -> Optional[ReadingSession]: ...

    @abstractmethod
    def put_reading_session(self, session: ReadingSession) -> None: ...

    @abstractmethod
    def list_reading_sessions(
        self, book_id: Optional[str] = None
    ) -> list[ReadingSession]: ...

    # ── Sync State ─────────────────────────────────────────

    @abstractmethod
    def get_last_sync(self) -> Optional[datetime]: ...

    @abstractmethod
    def set_last_sync(self, when: datetime) -> None: ...

    # ── Shared behaviour ───────────────────────────────────

    def delete_annotation(
        self, annotation_id: str, when: Optional[datetime] = None
    ) -> bool:
        """Soft-delete: tombstone the annotation instead of removing the row.

        Returns False if there is no such annotation.
        """
        annotation = self.get_annotation(annotation_id)
        if annotation is None:
            return False
        annotation.mark_deleted(when or utcnow())
        self.put_annotation(annotation)
        return True

    def snapshot(self) -> LibrarySnapshot:
        """Everything that takes part in sync, tombstones included."""
        return LibrarySnapshot(
            books=self.list_books(),
            tags=self.list_tags(),
            annotations=self.list_annotations(include_deleted=True),
            reading_sessions=self.list_reading_sessions(),
            last_sync=self.get_last_sync(),
        )


class MemoryStore(LibraryStore):
    """Dict-backed store. Records are copied in and out like a real database."""

    def __init__(self) -> None:
        self._books: dict[str, Book] = {}
        self._tags: dict[str, Tag] = {}
        self._annotations: dict[str, Annotation] = {}
        self._sessions: dict[str, ReadingSession] = {}
        self._last_sync: Optional[datetime] = None
        self.writes = 0

    def get_book(self, book_id: str) -> Optional[Book]:
        return copy.deepcopy(self._books.get(book_id))

    def get_book_by_file_name(self, file_name: str) -> Optional[Book]:
        for book in self._books.values():
            if book.file_name == file_name:
                return copy.deepcopy(book)
        return None

    def put_book(self, book: Book) -> None:
        self.writes += 1
        self._books[book.id] = copy.deepcopy(book)

    def delete_book(self, book_id: str) -> None:
        self.writes += 1
        self._books.pop(book_id, None)

    def list_books(self) -> list[Book]:
        return [copy.deepcopy(b) for b in self._books.values()]

    def get_tag(self, tag_id: str) -> Optional[Tag]:
        return copy.deepcopy(self._tags.get(tag_id))

    def get_tag_by_name(self, name: str) -> Optional[Tag]:
        for tag in self._tags.values():
            if tag.name == name:
                return copy.deepcopy(tag)
        return None

    def put_tag(self, tag: Tag) -> None:
        self.writes += 1
        self._tags[tag.id] = copy.deepcopy(tag)

    def delete_tag(self, tag_id: str) -> None:
        self.writes += 1
        self._tags.pop(tag_id, None)

    def list_tags(self) -> list[Tag]:
        return [copy.deepcopy(t) for t in self._tags.values()]

    def get_annotation(self, annotation_id: str) -> Optional[Annotation]:
        return copy.deepcopy(self._annotations.get(annotation_id))

    def put_annotation(self, annotation: Annotation) -> None:
        self.writes += 1
        self._annotations[annotation.id] = copy.deepcopy(annotation)

    def list_annotations(
        self, book_id: Optional[str] = None, include_deleted: bool = False
    ) -> list[Annotation]:
        return [
            copy.deepcopy(a)
            for a in self._annotations.values()
            if (book_id is None or a.book_id == book_id)
            and (include_deleted or not a.is_deleted)
        ]

    def get_reading_session(self, session_id: str) -> Optional[ReadingSession]:
        return copy.deepcopy(self._sessions.get(session_id))

    def put_reading_session(self, session: ReadingSession) -> None:
        self.writes += 1
        self._sessions[session.id] = copy.deepcopy(session)

    def list_reading_sessions(
        self, book_id: Optional[str] = None
    ) -> list[ReadingSession]:
        return [
            copy.deepcopy(s)
            for s in self._sessions.values()
            if book_id is None or s.book_id == book_id
        ]

    def get_last_sync(self) -> Optional[datetime]:
        return self._last_sync

    def set_last_sync(self, when: datetime) -> None:
        self._last_sync = when
