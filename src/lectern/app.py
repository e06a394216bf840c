"""Lectern - offline library sync."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

from lectern.config import AppConfig, load_config
from lectern.library.database import Database
from lectern.sync.client import RemoteClient
from lectern.sync.engine import SyncEngine, SyncReport
from lectern.sync.errors import SyncError
from lectern.sync.hydrate import format_timestamp

COMMANDS = ("sync", "push", "status")


def _setup_logging(config: AppConfig) -> None:
    handler = logging.FileHandler(config.log_path, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root = logging.getLogger("lectern")
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)


def _describe(report: SyncReport) -> str:
    lines = [report.message]
    for kind, counts in report.merged.items():
        if counts:
            summary = ", ".join(f"{n} {outcome}" for outcome, n in sorted(counts.items()))
            lines.append(f"  {kind}: {summary}")
    lines.append(f"  batches pushed: {report.batches_sent}")
    return "\n".join(lines)


async def _run(command: str, config: AppConfig, db: Database) -> SyncReport:
    async with RemoteClient(
        config.server_url,
        library_path=config.library_path,
        timeout=config.sync_timeout,
    ) as client:
        engine = SyncEngine(db, client, batch_size=config.push_batch_size)
        if command == "push":
            return await engine.push_local_state()
        return await engine.run_sync()


def _status(db: Database) -> str:
    last_sync = db.get_last_sync()
    return "\n".join(
        [
            f"books: {len(db.list_books())}",
            f"tags: {len(db.list_tags())}",
            f"annotations: {len(db.list_annotations())}",
            f"reading sessions: {len(db.list_reading_sessions())}",
            f"last sync: {format_timestamp(last_sync) if last_sync else 'never'}",
        ]
    )


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    command = args[0] if args else "sync"
    if command not in COMMANDS:
        print(f"Usage: lectern [{'|'.join(COMMANDS)}]", file=sys.stderr)
        return 2

    config = load_config()
    _setup_logging(config)
    db = Database(config.db_path)
    try:
        if command == "status":
            print(_status(db))
            return 0
        try:
            report = asyncio.run(_run(command, config, db))
        except SyncError as e:
            logging.getLogger("lectern").error("%s failed: %s", command, e)
            print(f"Sync failed: {e}", file=sys.stderr)
            return 1
        print(_describe(report))
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
