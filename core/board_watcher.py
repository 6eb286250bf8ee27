"""
Board hazard hot reload.

Polls board.json and swaps the store's hazards when the file content
changes, so edits saved from the settings surface apply to the next roll
without a restart. A file that fails validation is reported and the
previous hazards stay in force.
"""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from typing import Callable, Optional

from core.race.board import BoardHazards
from core.race.errors import RaceError
from core.race.store import RaceStateStore
from shared.config.board import default_board_path, load_board
from shared.logging.logger import get_logger

log = get_logger("core.board_watcher")


def _content_hash(path: Path) -> Optional[str]:
    try:
        return hashlib.sha256(path.read_bytes()).hexdigest()
    except FileNotFoundError:
        return None
    except OSError as e:
        log.warning(f"Failed to read board file {path}: {e}")
        return None


class BoardReloadWatcher:
    def __init__(
        self,
        store: RaceStateStore,
        *,
        path: Path | str | None = None,
        interval_seconds: float = 5.0,
        on_reload: Optional[Callable[[BoardHazards], None]] = None,
    ) -> None:
        self._store = store
        self.path = Path(path) if path else default_board_path()
        self.interval_seconds = max(0.5, float(interval_seconds or 5.0))
        self._on_reload = on_reload
        self._running = False
        self._last_hash: Optional[str] = _content_hash(self.path)
        self.reloads = 0
        self.failures = 0

    def check(self) -> bool:
        """
        Reload once if the file changed since the last check.

        Returns True when new hazards were applied. A deleted file is
        ignored; the board in force stays until a valid file reappears.
        """
        new_hash = _content_hash(self.path)
        if new_hash is None or new_hash == self._last_hash:
            return False
        self._last_hash = new_hash

        try:
            hazards = load_board(self.path)
        except RaceError as e:
            self.failures += 1
            log.error(f"Board change at {self.path} rejected; keeping current board: {e}")
            return False

        self._store.set_hazards(hazards)
        self.reloads += 1

        if self._on_reload is not None:
            try:
                self._on_reload(hazards)
            except Exception as e:
                log.warning(f"Board reload callback failed: {e}")
        return True

    async def run(self, stop_event: asyncio.Event) -> None:
        if self._running:
            log.warning("Board watcher already running; ignoring duplicate start")
            return

        self._running = True
        log.info(f"Board watcher started for {self.path}")

        try:
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass

                if stop_event.is_set():
                    break

                self.check()
        finally:
            self._running = False
            log.info(f"Board watcher stopped for {self.path}")
