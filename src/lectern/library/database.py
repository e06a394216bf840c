"""SQLite database for books, tags, annotations, reading sessions and sync state."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .models import Annotation, Book, ReadingSession, Tag
from .store import LibraryStore

_SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    author TEXT DEFAULT 'Unknown',
    format TEXT DEFAULT '',
    file_name TEXT DEFAULT '',
    file_path TEXT,
    file_size INTEGER DEFAULT 0,
    cover TEXT,
    status TEXT DEFAULT 'unread',
    progress REAL DEFAULT 0.0,
    current_position TEXT DEFAULT '',
    total_pages INTEGER,
    current_page INTEGER,
    rating INTEGER,
    categories TEXT DEFAULT '[]',
    is_favorite INTEGER DEFAULT 0,
    is_on_server INTEGER DEFAULT 0,
    metadata TEXT DEFAULT '{}',
    added_at REAL NOT NULL,
    updated_at REAL,
    last_read_at REAL,
    file_blob BLOB,
    cover_blob BLOB
);
CREATE INDEX IF NOT EXISTS idx_books_file_name ON books(file_name);

CREATE TABLE IF NOT EXISTS tags (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    color TEXT DEFAULT '',
    created_at REAL NOT NULL,
    updated_at REAL
);
CREATE INDEX IF NOT EXISTS idx_tags_name ON tags(name);

-- No foreign key to books: tombstones may outlive or precede their book.
CREATE TABLE IF NOT EXISTS annotations (
    id TEXT PRIMARY KEY,
    book_id TEXT NOT NULL,
    cfi TEXT DEFAULT '',
    text TEXT DEFAULT '',
    note TEXT,
    color TEXT DEFAULT 'yellow',
    chapter_title TEXT,
    chapter_index INTEGER,
    page_number INTEGER,
    created_at REAL NOT NULL,
    updated_at REAL,
    deleted_at REAL
);
CREATE INDEX IF NOT EXISTS idx_annotations_book ON annotations(book_id);

CREATE TABLE IF NOT EXISTS reading_sessions (
    id TEXT PRIMARY KEY,
    book_id TEXT NOT NULL,
    start_time REAL NOT NULL,
    end_time REAL NOT NULL,
    pages_read INTEGER DEFAULT 0,
    start_position TEXT DEFAULT '',
    end_position TEXT DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_sessions_book ON reading_sessions(book_id);

CREATE TABLE IF NOT EXISTS sync_state (
    key TEXT PRIMARY KEY,
    value REAL NOT NULL
);
"""


def _ts(value: Optional[datetime]) -> Optional[float]:
    return value.timestamp() if value is not None else None


def _dt(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class Database(LibraryStore):
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # ── Books ──────────────────────────────────────────────

    def put_book(self, book: Book) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO books
               (id, title, author, format, file_name, file_path, file_size, cover,
                status, progress, current_position, total_pages, current_page,
                rating, categories, is_favorite, is_on_server, metadata,
                added_at, updated_at, last_read_at, file_blob, cover_blob)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                book.id,
                book.title,
                book.author,
                book.format,
                book.file_name,
                book.file_path,
                book.file_size,
                book.cover,
                book.status,
                book.progress,
                book.current_position,
                book.total_pages,
                book.current_page,
                book.rating,
                json.dumps(book.categories),
                int(book.is_favorite),
                int(book.is_on_server),
                json.dumps(book.metadata),
                _ts(book.added_at),
                _ts(book.updated_at),
                _ts(book.last_read_at),
                book.file_blob,
                book.cover_blob,
            ),
        )
        self._conn.commit()

    def delete_book(self, book_id: str) -> None:
        self._conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        self._conn.commit()

    def get_book(self, book_id: str) -> Optional[Book]:
        row = self._conn.execute(
            "SELECT * FROM books WHERE id = ?", (book_id,)
        ).fetchone()
        return self._row_to_book(row) if row else None

    def get_book_by_file_name(self, file_name: str) -> Optional[Book]:
        row = self._conn.execute(
            "SELECT * FROM books WHERE file_name = ?", (file_name,)
        ).fetchone()
        return self._row_to_book(row) if row else None

    def list_books(self) -> list[Book]:
        rows = self._conn.execute("SELECT * FROM books ORDER BY added_at").fetchall()
        return [self._row_to_book(r) for r in rows]

    @staticmethod
    def _row_to_book(row: sqlite3.Row) -> Book:
        return Book(
            id=row["id"],
            title=row["title"],
            author=row["author"],
            format=row["format"],
            file_name=row["file_name"],
            file_path=row["file_path"],
            file_size=row["file_size"],
            cover=row["cover"],
            status=row["status"],
            progress=row["progress"],
            current_position=row["current_position"],
            total_pages=row["total_pages"],
            current_page=row["current_page"],
            rating=row["rating"],
            categories=json.loads(row["categories"] or "[]"),
            is_favorite=bool(row["is_favorite"]),
            is_on_server=bool(row["is_on_server"]),
            metadata=json.loads(row["metadata"] or "{}"),
            added_at=_dt(row["added_at"]),
            updated_at=_dt(row["updated_at"]),
            last_read_at=_dt(row["last_read_at"]),
            file_blob=row["file_blob"],
            cover_blob=row["cover_blob"],
        )

    # ── Tags ───────────────────────────────────────────────

    def put_tag(self, tag: Tag) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO tags (id, name, color, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?)""",
            (tag.id, tag.name, tag.color, _ts(tag.created_at), _ts(tag.updated_at)),
        )
        self._conn.commit()

    def delete_tag(self, tag_id: str) -> None:
        self._conn.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
        self._conn.commit()

    def get_tag(self, tag_id: str) -> Optional[Tag]:
        row = self._conn.execute("SELECT * FROM tags WHERE id = ?", (tag_id,)).fetchone()
        return self._row_to_tag(row) if row else None

    def get_tag_by_name(self, name: str) -> Optional[Tag]:
        row = self._conn.execute(
            "SELECT * FROM tags WHERE name = ?", (name,)
        ).fetchone()
        return self._row_to_tag(row) if row else None

    def list_tags(self) -> list[Tag]:
        rows = self._conn.execute("SELECT * FROM tags ORDER BY name").fetchall()
        return [self._row_to_tag(r) for r in rows]

    @staticmethod
    def _row_to_tag(row: sqlite3.Row) -> Tag:
        return Tag(
            id=row["id"],
            name=row["name"],
            color=row["color"],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )

    # ── Annotations ────────────────────────────────────────

    def put_annotation(self, annotation: Annotation) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO annotations
               (id, book_id, cfi, text, note, color, chapter_title, chapter_index,
                page_number, created_at, updated_at, deleted_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                annotation.id,
                annotation.book_id,
                annotation.cfi,
                annotation.text,
                annotation.note,
                annotation.color,
                annotation.chapter_title,
                annotation.chapter_index,
                annotation.page_number,
                _ts(annotation.created_at),
                _ts(annotation.updated_at),
                _ts(annotation.deleted_at),
            ),
        )
        self._conn.commit()

    def get_annotation(self, annotation_id: str) -> Optional[Annotation]:
        row = self._conn.execute(
            "SELECT * FROM annotations WHERE id = ?", (annotation_id,)
        ).fetchone()
        return self._row_to_annotation(row) if row else None

    def list_annotations(
        self, book_id: Optional[str] = None, include_deleted: bool = False
    ) -> list[Annotation]:
        query = "SELECT * FROM annotations WHERE 1 = 1"
        params: list[object] = []
        if book_id is not None:
            query += " AND book_id = ?"
            params.append(book_id)
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        query += " ORDER BY created_at"
        rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_annotation(r) for r in rows]

    @staticmethod
    def _row_to_annotation(row: sqlite3.Row) -> Annotation:
        return Annotation(
            id=row["id"],
            book_id=row["book_id"],
            cfi=row["cfi"],
            text=row["text"],
            note=row["note"],
            color=row["color"],
            chapter_title=row["chapter_title"],
            chapter_index=row["chapter_index"],
            page_number=row["page_number"],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
            deleted_at=_dt(row["deleted_at"]),
        )

    # ── Reading Sessions ───────────────────────────────────

    def put_reading_session(self, session: ReadingSession) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO reading_sessions
               (id, book_id, start_time, end_time, pages_read, start_position, end_position)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                session.id,
                session.book_id,
                _ts(session.start_time),
                _ts(session.end_time),
                session.pages_read,
                session.start_position,
                session.end_position,
            ),
        )
        self._conn.commit()

    def get_reading_session(self, session_id: str) -> Optional[ReadingSession]:
        row = self._conn.execute(
            "SELECT * FROM reading_sessions WHERE id = ?", (session_id,)
        ).fetchone()
        return self._row_to_session(row) if row else None

    def list_reading_sessions(
        self, book_id: Optional[str] = None
    ) -> list[ReadingSession]:
        if book_id is None:
            rows = self._conn.execute(
                "SELECT * FROM reading_sessions ORDER BY start_time"
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM reading_sessions WHERE book_id = ? ORDER BY start_time",
                (book_id,),
            ).fetchall()
        return [self._row_to_session(r) for r in rows]

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> ReadingSession:
        return ReadingSession(
            id=row["id"],
            book_id=row["book_id"],
            start_time=_dt(row["start_time"]),
            end_time=_dt(row["end_time"]),
            pages_read=row["pages_read"],
            start_position=row["start_position"],
            end_position=row["end_position"],
        )

    # ── Sync State ─────────────────────────────────────────

    def get_last_sync(self) -> Optional[datetime]:
        row = self._conn.execute(
            "SELECT value FROM sync_state WHERE key = 'last_sync'"
        ).fetchone()
        return _dt(row["value"]) if row else None

    def set_last_sync(self, when: datetime) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO sync_state (key, value) VALUES ('last_sync', ?)",
            (_ts(when),),
        )
        self._conn.commit()
