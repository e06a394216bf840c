"""Tests for timestamp hydration and the wire format."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from factories import at, make_annotation, make_book

from lectern.library.models import Annotation, Book, ReadingSession, Tag
from lectern.sync.errors import MalformedResponseError
from lectern.sync.hydrate import (
    EPOCH,
    format_timestamp,
    merge_time,
    parse_timestamp,
    record_from_wire,
    record_to_wire,
    snapshot_from_wire,
)

NOON = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestParseTimestamp:
    @pytest.mark.parametrize(
        "value",
        [
            "2024-01-01T12:00:00.000Z",
            "2024-01-01T12:00:00Z",
            "2024-01-01T13:00:00+01:00",
            "2024-01-01T12:00:00",
            1704110400000,
            "1704110400000",
            NOON,
            NOON.replace(tzinfo=None),
        ],
    )
    def test_equivalent_forms(self, value):
        assert parse_timestamp(value) == NOON

    @pytest.mark.parametrize("value", [None, "", "not a date", True, [1, 2]])
    def test_unusable_values(self, value):
        assert parse_timestamp(value) is None

    @pytest.mark.parametrize(
        "value", [8.64e15, 10**20, "99999999999999999999", float("nan"), float("inf")]
    )
    def test_out_of_range_epoch_values(self, value):
        assert parse_timestamp(value) is None

    def test_result_is_aware(self):
        assert parse_timestamp("2024-01-01T12:00:00").tzinfo is not None


class TestFormatTimestamp:
    def test_utc_millis_with_z(self):
        assert format_timestamp(NOON) == "2024-01-01T12:00:00.000Z"

    def test_converts_offsets_to_utc(self):
        plus_two = NOON.astimezone(timezone(timedelta(hours=2)))
        assert format_timestamp(plus_two) == "2024-01-01T12:00:00.000Z"

    def test_none(self):
        assert format_timestamp(None) is None


class TestMergeTime:
    def test_missing_is_zero(self):
        assert merge_time(None, None) == 0

    def test_takes_latest(self):
        assert merge_time(at(1), None, at(5)) == at(5).timestamp() * 1000


class TestRecordFromWire:
    def test_book_camel_case_and_dates(self):
        book = record_from_wire(
            Book,
            {
                "id": "b1",
                "title": "Dune",
                "fileName": "dune.epub",
                "addedAt": "2024-01-01T12:00:00.000Z",
                "updatedAt": "2024-01-01T12:05:00.000Z",
                "lastReadAt": None,
                "isFavorite": True,
                "categories": None,
                "someFutureField": 1,
            },
        )
        assert book.file_name == "dune.epub"
        assert book.added_at == NOON
        assert book.updated_at == at(5)
        assert book.last_read_at is None
        assert book.is_favorite is True
        assert book.categories == []

    def test_binary_fields_never_hydrated(self):
        book = record_from_wire(
            Book, {"id": "b1", "title": "T", "fileBlob": "AAAA", "coverBlob": "BBBB"}
        )
        assert book.file_blob is None
        assert book.cover_blob is None

    def test_missing_required_date_defaults_to_epoch(self):
        tag = record_from_wire(Tag, {"id": "t1", "name": "Ciencia"})
        assert tag.created_at == EPOCH

    def test_annotation_tombstone(self):
        ann = record_from_wire(
            Annotation,
            {
                "id": "a1",
                "bookId": "b1",
                "createdAt": "2024-01-01T12:00:00Z",
                "updatedAt": "2024-01-01T12:09:00Z",
                "deletedAt": "2024-01-01T12:09:00Z",
            },
        )
        assert ann.is_deleted
        assert ann.deleted_at == at(9)

    def test_session(self):
        session = record_from_wire(
            ReadingSession,
            {
                "id": "s1",
                "bookId": "b1",
                "startTime": "2024-01-01T12:00:00Z",
                "endTime": "2024-01-01T12:30:00Z",
                "pagesRead": 12,
            },
        )
        assert session.duration == 1800

    def test_missing_id(self):
        with pytest.raises(MalformedResponseError):
            record_from_wire(Tag, {"name": "Ciencia"})

    def test_empty_id(self):
        with pytest.raises(MalformedResponseError):
            record_from_wire(Tag, {"id": "", "name": "Ciencia"})

    def test_not_an_object(self):
        with pytest.raises(MalformedResponseError):
            record_from_wire(Book, "b1")


class TestRecordToWire:
    def test_strips_binary_fields(self):
        wire = record_to_wire(make_book(file_blob=b"epub", cover_blob=b"png"))
        assert "fileBlob" not in wire
        assert "coverBlob" not in wire
        assert wire["fileName"] == "b1.epub"

    def test_dates_serialized(self):
        wire = record_to_wire(make_annotation(updated=3, deleted=3))
        assert wire["updatedAt"] == "2024-01-01T12:03:00.000Z"
        assert wire["deletedAt"] == "2024-01-01T12:03:00.000Z"
        assert wire["bookId"] == "b1"

    def test_wire_round_trip_preserves_book(self):
        book = make_book(updated=2, last_read=4, categories=["t1"], rating=4)
        assert record_from_wire(Book, record_to_wire(book)) == book


class TestSnapshotFromWire:
    def test_missing_collections_are_empty(self):
        snapshot = snapshot_from_wire({"books": [], "tags": [], "annotations": []})
        assert snapshot.reading_sessions == []
        assert snapshot.last_sync is None
        assert snapshot.is_uninitialized

    def test_null_collection_is_empty(self):
        assert snapshot_from_wire({"books": None}).books == []

    def test_last_sync(self):
        snapshot = snapshot_from_wire({"lastSync": "2024-01-01T12:00:00.000Z"})
        assert snapshot.last_sync == NOON

    def test_collection_not_a_list(self):
        with pytest.raises(MalformedResponseError):
            snapshot_from_wire({"books": {"id": "b1"}})

    def test_not_an_object(self):
        with pytest.raises(MalformedResponseError):
            snapshot_from_wire(["books"])

    @pytest.mark.parametrize(
        "value", [8.64e15, 10**20, "99999999999999999999", float("nan")]
    )
    def test_out_of_range_timestamp_is_missing(self, value):
        snapshot = snapshot_from_wire(
            {"books": [{"id": "b1", "title": "T", "updatedAt": value}], "tags": []}
        )
        assert snapshot.books[0].updated_at is None
