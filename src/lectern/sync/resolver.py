"""Merge decisions for one remote record against its local counterpart.

Nothing here touches the store; the engine applies the returned actions.
"""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from typing import Any, Optional

from lectern.library.models import (
    LOCAL_ONLY_BOOK_FIELDS,
    Annotation,
    Book,
    ReadingSession,
    Tag,
)
from lectern.sync.hydrate import merge_time


class MergeOutcome(str, enum.Enum):
    INSERT = "insert"  # no local copy, store the remote record
    OVERWRITE = "overwrite"  # remote is newer, replace the local record
    KEEP = "keep"  # local is as new or newer
    SKIP = "skip"  # remote record is not stored at all
    REPLACE = "replace"  # drop the local record under another id, store remote


@dataclass(frozen=True)
class MergeAction:
    outcome: MergeOutcome
    record: Any = None
    replaces: Optional[str] = None

    @property
    def writes(self) -> bool:
        return self.outcome in (
            MergeOutcome.INSERT,
            MergeOutcome.OVERWRITE,
            MergeOutcome.REPLACE,
        )


_KEEP = MergeAction(MergeOutcome.KEEP)
_SKIP = MergeAction(MergeOutcome.SKIP)


def resolve_book(local: Optional[Book], remote: Book) -> MergeAction:
    if local is None:
        return MergeAction(MergeOutcome.INSERT, remote)
    remote_time = merge_time(remote.updated_at, remote.last_read_at)
    local_time = merge_time(local.updated_at, local.last_read_at)
    if remote_time > local_time:
        keep = {name: getattr(local, name) for name in LOCAL_ONLY_BOOK_FIELDS}
        return MergeAction(MergeOutcome.OVERWRITE, dataclasses.replace(remote, **keep))
    return _KEEP


def resolve_annotation(
    local: Optional[Annotation], remote: Annotation
) -> MergeAction:
    if local is None:
        # A tombstone we never saw means "already gone", not "resurrect".
        if remote.is_deleted:
            return _SKIP
        return MergeAction(MergeOutcome.INSERT, remote)
    if merge_time(remote.updated_at) > merge_time(local.updated_at):
        return MergeAction(MergeOutcome.OVERWRITE, remote)
    return _KEEP


def resolve_tag(
    remote: Tag, by_id: Optional[Tag], by_name: Optional[Tag]
) -> MergeAction:
    """Tags match on id first, then on name.

    A name match under a different id adopts the remote id outright so tag
    identity converges across replicas; a local edit to that tag that has
    not been pushed yet is lost.
    """
    if by_id is not None:
        remote_time = merge_time(remote.updated_at or remote.created_at)
        local_time = merge_time(by_id.updated_at or by_id.created_at)
        if remote_time > local_time:
            return MergeAction(MergeOutcome.OVERWRITE, remote)
        return _KEEP
    if by_name is not None:
        return MergeAction(MergeOutcome.REPLACE, remote, replaces=by_name.id)
    return MergeAction(MergeOutcome.INSERT, remote)


def resolve_reading_session(
    local: Optional[ReadingSession], remote: ReadingSession
) -> MergeAction:
    # Sessions are append-only.
    if local is None:
        return MergeAction(MergeOutcome.INSERT, remote)
    return _SKIP
