from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from lectern.library.models import LibrarySnapshot, utcnow
from lectern.sync.client import RemoteClient
from lectern.sync.errors import PushError, TransportError
from lectern.sync.hydrate import format_timestamp, record_to_wire

log = logging.getLogger(__name__)

PUSH_BATCH_SIZE = 500


def build_batches(
    snapshot: LibrarySnapshot,
    batch_size: int = PUSH_BATCH_SIZE,
    now: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """Split a snapshot into push payloads.

    Books are chunked; tags, annotations and reading sessions ride only on the
    last payload. There is always at least one payload.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    last_sync = format_timestamp(now or utcnow())
    books = [record_to_wire(b) for b in snapshot.books]
    chunks = [books[i : i + batch_size] for i in range(0, len(books), batch_size)]
    if not chunks:
        chunks.append([])

    batches: list[dict[str, Any]] = []
    for i, chunk in enumerate(chunks):
        is_last = i == len(chunks) - 1
        batches.append(
            {
                "books": chunk,
                "tags": [record_to_wire(t) for t in snapshot.tags] if is_last else [],
                "annotations": (
                    [record_to_wire(a) for a in snapshot.annotations] if is_last else []
                ),
                "readingSessions": (
                    [record_to_wire(s) for s in snapshot.reading_sessions]
                    if is_last
                    else []
                ),
                "lastSync": last_sync,
            }
        )
    return batches


class BatchPusher:
    def __init__(self, client: RemoteClient, batch_size: int = PUSH_BATCH_SIZE) -> None:
        self._client = client
        self.batch_size = batch_size

    async def push(self, snapshot: LibrarySnapshot) -> int:
        """Send the snapshot batch by batch. Returns the number of batches sent."""
        batches = build_batches(snapshot, self.batch_size)
        log.info(
            "Pushing %d books in %d batches", len(snapshot.books), len(batches)
        )
        for i, payload in enumerate(batches, 1):
            log.debug(
                "Pushing batch %d/%d (%d books)", i, len(batches), len(payload["books"])
            )
            try:
                await self._client.post_state(payload)
            except TransportError as e:
                raise PushError(
                    f"Failed to push batch {i}/{len(batches)}: {e}",
                    batch=i,
                    status_code=e.status_code,
                    details=e.details,
                ) from e
        log.info("Push complete")
        return len(batches)
