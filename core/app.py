"""
======================================================================
 TileRace Runtime, Version v0.3.0 (Build 2026.10)
======================================================================
"""

"""
Runtime entrypoint.

Owns:
- event loop creation and signal handling
- configuration + board loading
- wiring of store → hub → observers (API, exporter) and the Discord producer
- orderly startup and shutdown
"""

import asyncio
import signal
import sys
import time
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from core.board_watcher import BoardReloadWatcher
from core.race.event_log import EventLog
from core.race.hub import BroadcastHub
from core.race.store import RaceStateStore
from core.state_exporter import RaceStateExporter
from runtime import version as runtime_version
from shared.config.board import load_board
from shared.config.system import SystemConfig, load_system_config
from shared.logging.logger import get_logger
from shared.storage.state_publisher import DashboardStatePublisher
from services.discord.runtime.supervisor import DiscordSupervisor
from services.observer_api.server import ObserverServer, create_app

log = get_logger("core.app")


# ----------------------------------------------------------------------
# WIRING
# ----------------------------------------------------------------------

def _rotate_journal(path: Path) -> None:
    """
    A journal from a previous run is moved aside; each run starts a fresh
    race at cursor 0.
    """
    if not path.exists() or path.stat().st_size == 0:
        return
    rotated = path.with_name(f"{path.stem}.{time.strftime('%Y%m%d-%H%M%S')}{path.suffix}")
    path.replace(rotated)
    log.info(f"Previous event journal moved to {rotated}")


def build_store(config: SystemConfig) -> RaceStateStore:
    hazards = load_board(config.board_path)

    journal_path: Optional[Path] = None
    if config.storage.journal_path:
        journal_path = Path(config.storage.journal_path)
        _rotate_journal(journal_path)

    return RaceStateStore(hazards, event_log=EventLog(journal_path))


# ----------------------------------------------------------------------
# MAIN ASYNC ENTRYPOINT
# ----------------------------------------------------------------------

async def main(stop_event: asyncio.Event):
    load_dotenv()
    log.info("Environment variables loaded")
    log.info(f"{runtime_version.as_string()} booting")

    config = load_system_config()
    store = build_store(config)
    hub = BroadcastHub(store, max_pending=config.observer.max_pending)
    publisher = DashboardStatePublisher(base_dir=config.storage.state_dir)

    def _fatal(error: Exception) -> None:
        log.critical(f"Fatal race state error, stopping runtime: {error}")
        stop_event.set()

    tasks = []

    # --------------------------------------------------
    # OBSERVERS
    # --------------------------------------------------
    server: Optional[ObserverServer] = None
    if config.observer.enabled:
        server = ObserverServer(create_app(store, hub, config.observer), config.observer)
        await server.start()
    else:
        log.info("Observer API disabled by configuration")

    exporter: Optional[RaceStateExporter] = None
    if config.storage.export_enabled:
        exporter = RaceStateExporter(store, hub, publisher)
        exporter.export_once()
        tasks.append(asyncio.create_task(exporter.run()))

    if config.board_reload.enabled:
        watcher = BoardReloadWatcher(
            store,
            path=config.board_path,
            interval_seconds=config.board_reload.interval_seconds,
            on_reload=(lambda _hazards: exporter.export_once()) if exporter else None,
        )
        tasks.append(asyncio.create_task(watcher.run(stop_event)))

    # --------------------------------------------------
    # PRODUCER
    # --------------------------------------------------
    supervisor: Optional[DiscordSupervisor] = None
    if config.discord.enabled:
        supervisor = DiscordSupervisor(
            store=store,
            hub=hub,
            config=config.discord,
            publisher=publisher,
            on_fatal=_fatal,
        )
        try:
            await supervisor.start()
        except RuntimeError as e:
            log.error(f"Failed to start Discord supervisor: {e}")
            supervisor = None
    else:
        log.info("Discord producer disabled by configuration")

    # --------------------------------------------------
    # BLOCK UNTIL SHUTDOWN SIGNAL
    # --------------------------------------------------
    await stop_event.wait()

    log.info("Shutdown initiated")

    # --------------------------------------------------
    # ORDERLY SHUTDOWN: PRODUCER FIRST
    # --------------------------------------------------
    if supervisor:
        try:
            await supervisor.shutdown()
        except Exception as e:
            log.warning(f"Discord supervisor shutdown error ignored: {e}")

    if server:
        await server.shutdown()

    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)

    log.info(f"TileRace stopped at cursor {store.events.cursor}")


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    def _handler(signum, frame):
        loop.call_soon_threadsafe(stop_event.set)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run():
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    stop_event = asyncio.Event()
    _install_signal_handlers(loop, stop_event)

    try:
        loop.run_until_complete(main(stop_event))

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received; shutdown initiated")

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS (CLEANLY)
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        loop.run_until_complete(loop.shutdown_asyncgens())

        asyncio.set_event_loop(None)
        loop.close()


if __name__ == "__main__":
    run()
    sys.exit(0)
