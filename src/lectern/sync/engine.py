from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, TypeVar

from lectern.library.models import Book, utcnow
from lectern.library.store import LibraryStore
from lectern.sync.client import RemoteClient
from lectern.sync.errors import SyncInProgressError
from lectern.sync.hydrate import snapshot_from_wire
from lectern.sync.pusher import PUSH_BATCH_SIZE, BatchPusher
from lectern.sync.resolver import (
    MergeAction,
    MergeOutcome,
    resolve_annotation,
    resolve_book,
    resolve_reading_session,
    resolve_tag,
)

log = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class SyncReport:
    success: bool = False
    message: str = ""
    bootstrap: bool = False
    merged: dict[str, Counter] = field(default_factory=dict)
    batches_sent: int = 0
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def local_writes(self) -> int:
        return sum(
            count
            for counts in self.merged.values()
            for outcome, count in counts.items()
            if outcome in ("insert", "overwrite", "replace")
        )


class SyncEngine:
    """Reconciles the local store with the remote metadata service.

    One run pulls the remote snapshot, merges every collection into the store
    and pushes the merged state back. Runs never overlap: a second call while
    one is in flight raises ``SyncInProgressError``.
    """

    def __init__(
        self,
        store: LibraryStore,
        client: RemoteClient,
        batch_size: int = PUSH_BATCH_SIZE,
    ) -> None:
        self._store = store
        self._client = client
        self._pusher = BatchPusher(client, batch_size)
        self._lock = asyncio.Lock()

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    async def run_sync(self) -> SyncReport:
        if self._lock.locked():
            raise SyncInProgressError("A sync is already in progress")
        async with self._lock:
            return await self._run()

    async def push_local_state(self) -> SyncReport:
        """One-way push of the whole local library."""
        if self._lock.locked():
            raise SyncInProgressError("A sync is already in progress")
        async with self._lock:
            report = SyncReport()
            report.batches_sent = await self._pusher.push(self._store.snapshot())
            return self._finish(report, "Push complete")

    async def send_heartbeat(self, book: Book) -> None:
        """Report reading position for one book between full syncs."""
        await self._client.send_heartbeat(
            book.id,
            book.current_position,
            progress=book.progress,
            total_pages=book.total_pages,
            current_page=book.current_page,
        )

    async def _run(self) -> SyncReport:
        report = SyncReport()
        log.info("Starting sync")

        remote = snapshot_from_wire(await self._client.fetch_snapshot())
        log.info("Received %d books from server", len(remote.books))

        if remote.is_uninitialized:
            log.info("Server library empty, pushing local data")
            report.bootstrap = True
            report.batches_sent = await self._pusher.push(self._store.snapshot())
            return self._finish(report, "Initial push complete")

        store = self._store
        report.merged["books"] = self._merge(
            "books",
            remote.books,
            {b.id: b for b in store.list_books()},
            resolve_book,
            store.put_book,
        )
        report.merged["tags"] = self._merge_tags(remote.tags)
        report.merged["annotations"] = self._merge(
            "annotations",
            remote.annotations,
            {a.id: a for a in store.list_annotations(include_deleted=True)},
            resolve_annotation,
            store.put_annotation,
        )
        report.merged["reading_sessions"] = self._merge(
            "reading_sessions",
            remote.reading_sessions,
            {s.id: s for s in store.list_reading_sessions()},
            resolve_reading_session,
            store.put_reading_session,
        )

        report.batches_sent = await self._pusher.push(store.snapshot())
        return self._finish(report, "Sync complete")

    def _merge(
        self,
        kind: str,
        remote_records: list[R],
        local: dict[str, R],
        resolve: Callable[[Optional[R], R], MergeAction],
        put: Callable[[R], None],
    ) -> Counter:
        counts: Counter = Counter()
        for remote in remote_records:
            action = resolve(local.get(remote.id), remote)
            if action.writes:
                put(action.record)
                local[remote.id] = action.record
            log.debug("%s %s: %s", kind, remote.id, action.outcome.value)
            counts[action.outcome.value] += 1
        log.info("Merged %s: %s", kind, dict(counts))
        return counts

    def _merge_tags(self, remote_tags: list) -> Counter:
        store = self._store
        by_id = {t.id: t for t in store.list_tags()}
        by_name = {t.name: t for t in by_id.values()}
        counts: Counter = Counter()
        for remote in remote_tags:
            action = resolve_tag(remote, by_id.get(remote.id), by_name.get(remote.name))
            if action.outcome is MergeOutcome.REPLACE:
                log.info(
                    "Tag %r: adopting server id %s over local %s",
                    remote.name,
                    remote.id,
                    action.replaces,
                )
                store.delete_tag(action.replaces)
                by_id.pop(action.replaces, None)
            if action.writes:
                store.put_tag(action.record)
                stale = by_id.get(remote.id)
                if stale is not None and by_name.get(stale.name) is stale:
                    del by_name[stale.name]
                by_id[remote.id] = action.record
                by_name[remote.name] = action.record
            counts[action.outcome.value] += 1
        log.info("Merged tags: %s", dict(counts))
        return counts

    def _finish(self, report: SyncReport, message: str) -> SyncReport:
        report.success = True
        report.message = message
        report.completed_at = utcnow()
        self._store.set_last_sync(report.completed_at)
        log.info("%s (%d batches pushed)", message, report.batches_sent)
        return report
