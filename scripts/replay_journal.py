"""
======================================================================
 TileRace Runtime, Version v0.3.0 (Build 2026.10)
======================================================================

Rebuild race state from an event journal.

Usage:
    python scripts/replay_journal.py shared/state/events.jsonl
    python scripts/replay_journal.py events.jsonl --output race.json --board board.json

Prints the resulting snapshot document (or writes it with --output).
A journal that cannot be replayed exits non-zero.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from core.race.errors import RaceError
from core.race.event_log import load_journal
from core.race.store import RaceStateStore
from shared.config.board import load_board


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay a TileRace event journal")
    parser.add_argument("journal", type=Path, help="JSONL journal to replay")
    parser.add_argument(
        "--board",
        type=Path,
        default=None,
        help="Board hazard file (default: shared/config/board.json)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the snapshot here instead of printing it",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    if not args.journal.exists():
        print(f"Journal not found: {args.journal}", file=sys.stderr)
        return 1

    try:
        events = load_journal(args.journal)
        store = RaceStateStore.replay(events, load_board(args.board))
    except RaceError as e:
        print(f"Replay failed: {e}", file=sys.stderr)
        return 1

    document = store.snapshot().to_document()

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(json.dumps(document, indent=2), encoding="utf-8")
        print(f"Replayed {len(events)} event(s) into {args.output}")
    else:
        print(json.dumps(document, indent=2))

    return 0


if __name__ == "__main__":
    sys.exit(main())
