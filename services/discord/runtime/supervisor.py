"""
Discord Runtime Supervisor

Owns the lifecycle of the Discord producer adapter.

Responsibilities:
- build the race command handler and the Discord client
- run the client as a task
- publish a small runtime status file for the dashboard
- perform graceful shutdown

IMPORTANT:
- MUST be started by core.app
- MUST NOT create its own event loop
- MUST NOT install signal handlers
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.race.hub import BroadcastHub
from core.race.store import RaceStateStore
from shared.config.system import DiscordConfig
from shared.logging.logger import get_logger
from shared.storage.state_publisher import DashboardStatePublisher
from services.discord.client import DiscordClient
from services.discord.commands.race import RaceCommandHandler
from services.discord.logging import DiscordLogAdapter

# NOTE: routed to Discord runtime log file
log = get_logger("discord.supervisor", runtime="discord")

RUNTIME_STATE_FILE = "discord/runtime.json"


class DiscordSupervisor:
    """
    Owns the Discord runtime lifecycle.

    Contract:
    - start() is awaitable
    - shutdown() is idempotent
    """

    def __init__(
        self,
        *,
        store: RaceStateStore,
        hub: BroadcastHub,
        config: DiscordConfig,
        publisher: Optional[DashboardStatePublisher] = None,
        on_fatal: Optional[Callable[[Exception], None]] = None,
    ):
        self._config = config
        self._publisher = publisher
        self._client: Optional[DiscordClient] = None
        self._tasks: List[asyncio.Task] = []
        self._running: bool = False
        self._connected: bool = False
        self._connected_at: Optional[datetime] = None

        self.logger = DiscordLogAdapter()
        self.handler = RaceCommandHandler(
            store=store,
            hub=hub,
            logger=self.logger,
            logs_char_limit=config.logs_char_limit,
            on_fatal=on_fatal,
        )

    # --------------------------------------------------
    # Snapshot helpers (supervisor-owned)
    # --------------------------------------------------

    def _build_snapshot_payload(self) -> Dict[str, Any]:
        bot = self._client.bot if self._client else None
        return {
            "running": self._running,
            "connected": self._connected,
            "connected_at": (
                self._connected_at.isoformat() if self._connected_at else None
            ),
            "task_count": self.task_count,
            "guild_count": len(bot.guilds) if bot and self._connected else None,
            "recent_commands": self.logger.recent_commands(20),
        }

    def _write_snapshot(self):
        if self._publisher:
            self._publisher.publish(RUNTIME_STATE_FILE, self._build_snapshot_payload())

    def notify_connected(self):
        self._connected = True
        self._connected_at = datetime.now(timezone.utc)
        self._write_snapshot()

    def notify_disconnected(self):
        self._connected = False
        self._write_snapshot()

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------

    async def start(self):
        """
        Start the Discord runtime.
        """
        if self._running:
            log.warning("Discord supervisor already running")
            return

        log.info("Starting Discord supervisor")

        self._client = DiscordClient(
            handler=self.handler,
            logger=self.logger,
            token_env=self._config.token_env,
            sync_guild_id=self._config.sync_guild_id,
            supervisor=self,
        )

        self._tasks.append(asyncio.create_task(self._client.run()))

        self._running = True
        log.info("Discord supervisor started")
        self._write_snapshot()

    async def shutdown(self):
        """
        Gracefully shut down the Discord runtime.
        """
        if not self._running:
            return

        log.info("Shutting down Discord supervisor")

        try:
            if self._client:
                await self._client.shutdown()
        except Exception as e:
            log.warning(f"Discord client shutdown error ignored: {e}")

        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        self._client = None
        self._running = False
        self._connected = False

        self._write_snapshot()

        log.info("Discord supervisor shutdown complete")

    # --------------------------------------------------
    # Read-only Introspection
    # --------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def task_count(self) -> int:
        return len(self._tasks)

    def snapshot(self) -> Dict[str, Any]:
        return self._build_snapshot_payload()
