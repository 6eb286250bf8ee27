"""
Append-only Event Log.

Ordering in the log is the total order in which the store accepted
mutations. Cursors are event seq numbers: since(cursor) returns every event
with seq > cursor. The optional JSONL journal is an audit trail, not a
durability guarantee.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Iterator, List, Optional

from core.race.errors import EventLogStorageError, RaceStateCorrupt
from core.race.events import MutationEvent, event_from_document
from shared.logging.logger import get_logger

log = get_logger("core.race.event_log")


class EventLog:
    """
    In-memory ordered event sequence.

    base_cursor lets a log start part-way through a history (a replica
    seeded from a snapshot): its first appended event must carry
    seq == base_cursor + 1 and earlier events are simply not available.
    """

    def __init__(
        self,
        journal_path: Path | str | None = None,
        *,
        base_cursor: int = 0,
    ) -> None:
        self._events: List[MutationEvent] = []
        self._base = max(0, int(base_cursor))
        self._lock = threading.Lock()
        self._journal_path = Path(journal_path) if journal_path else None

        if self._journal_path:
            self._journal_path.parent.mkdir(parents=True, exist_ok=True)
            log.info(f"Event journal enabled at {self._journal_path}")

    # ------------------------------------------------------------------
    # Cursor helpers
    # ------------------------------------------------------------------

    @property
    def cursor(self) -> int:
        """Seq of the newest event (0 when empty)."""
        with self._lock:
            return self._base + len(self._events)

    @property
    def next_seq(self) -> int:
        with self._lock:
            return self._base + len(self._events) + 1

    @property
    def base_cursor(self) -> int:
        return self._base

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __iter__(self) -> Iterator[MutationEvent]:
        with self._lock:
            return iter(list(self._events))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def append(self, event: MutationEvent) -> None:
        with self._lock:
            expected = self._base + len(self._events) + 1
            if event.seq != expected:
                raise RaceStateCorrupt(
                    f"Event seq {event.seq} does not follow log cursor {expected - 1}"
                )
            if self._journal_path:
                self._write_journal(event)
            self._events.append(event)

    def _write_journal(self, event: MutationEvent) -> None:
        try:
            with self._journal_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(event.to_document(), ensure_ascii=False) + "\n")
        except OSError as exc:
            log.error(f"Failed to append event {event.seq} to journal: {exc}")
            raise EventLogStorageError(f"Event journal write failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def since(self, cursor: int = 0, limit: Optional[int] = None) -> List[MutationEvent]:
        """
        Return events with seq > cursor, oldest first.

        Cursors below the log's base start at the oldest retained event; a
        cursor beyond the newest event yields an empty list.
        """
        start = max(0, int(cursor) - self._base)
        with self._lock:
            tail = self._events[start:]
        if limit is not None:
            tail = tail[: max(0, int(limit))]
        return tail


def load_journal(path: Path | str) -> List[MutationEvent]:
    """
    Read a JSONL journal back into events.

    Blank lines are skipped; malformed lines raise RaceStateCorrupt so a
    replay never silently diverges from what was accepted.
    """
    journal = Path(path)
    events: List[MutationEvent] = []
    with journal.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                doc = json.loads(line)
            except json.JSONDecodeError as exc:
                raise RaceStateCorrupt(f"{journal}:{lineno}: invalid JSON ({exc})") from exc
            events.append(event_from_document(doc))
    return events
