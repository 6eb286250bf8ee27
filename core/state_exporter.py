"""
Race snapshot exporter.

Registers with the Broadcast Hub like any other observer and, whenever new
messages arrive, writes `shared/state/race.json` (and mirrors it into the
dashboard publish root when configured) via DashboardStatePublisher. Static
dashboards can poll that file instead of holding a WebSocket open.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from runtime import version as runtime_version

from core.race.hub import BroadcastHub, ObserverChannel
from core.race.store import RaceStateStore
from shared.logging.logger import get_logger
from shared.storage.state_publisher import DashboardStatePublisher

log = get_logger("core.state_exporter")

RACE_STATE_FILE = "race.json"


class RaceStateExporter:
    def __init__(
        self,
        store: RaceStateStore,
        hub: BroadcastHub,
        publisher: DashboardStatePublisher,
        *,
        relative_path: str = RACE_STATE_FILE,
    ) -> None:
        self._store = store
        self._hub = hub
        self._publisher = publisher
        self._relative_path = relative_path
        self._channel: Optional[ObserverChannel] = None
        self._exports = 0

    # ------------------------------------------------------------
    # Payload
    # ------------------------------------------------------------

    def build_payload(self) -> Dict[str, Any]:
        snapshot = self._store.snapshot()
        payload = snapshot.to_document()
        payload["board"] = self._store.hazards.to_document()
        payload["runtime"] = runtime_version.as_dict()
        return payload

    def export_once(self) -> bool:
        ok = self._publisher.publish(self._relative_path, self.build_payload())
        if ok:
            self._exports += 1
        return ok

    @property
    def export_count(self) -> int:
        return self._exports

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    async def run(self) -> None:
        """
        Export on every batch of hub messages until cancelled.
        """
        self._channel = self._hub.register("state-exporter")
        log.info(f"Race state exporter writing {self._relative_path}")

        try:
            while True:
                batch = await self._channel.receive()
                if not batch:
                    break
                self.export_once()
        except asyncio.CancelledError:
            raise
        finally:
            self._hub.unregister(self._channel)
            self._channel = None
            log.info("Race state exporter stopped")
