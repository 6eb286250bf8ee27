"""
Observer API (FastAPI)

Read-only HTTP + WebSocket surface for race dashboards.

Routes:
- GET  /health                       → liveness + hub metrics
- GET  /api/state                    → full snapshot document
- GET  /api/events?cursor=&limit=    → incremental catch-up from a cursor
- GET  /api/logs                     → rendered audit log lines
- WS   /ws                           → snapshot, then every accepted mutation

Clients may send {"type": "requestTeams"} or {"type": "requestLogs"} over
the socket; replies are queued on the same channel so they never overtake
event messages already sent.

IMPORTANT:
- Nothing here mutates race state
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from core.race.hub import BroadcastHub, ObserverChannel
from core.race.store import RaceStateStore
from core.race.wire import logs_update_message, snapshot_message
from runtime import version as runtime_version
from shared.config.system import ObserverApiConfig
from shared.logging.logger import get_logger
from shared.public_exports.audit import render_lines

log = get_logger("services.observer_api")

REQUEST_TEAMS = "requestTeams"
REQUEST_LOGS = "requestLogs"


def create_app(
    store: RaceStateStore,
    hub: BroadcastHub,
    config: Optional[ObserverApiConfig] = None,
) -> FastAPI:
    config = config or ObserverApiConfig()

    app = FastAPI(
        title="TileRace Observer API",
        description="Live race state for dashboards",
        version=runtime_version.VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.allow_origins),
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------
    # REST
    # ------------------------------------------------------------

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "status": "healthy",
            "version": runtime_version.VERSION,
            "hub": hub.get_metrics(),
        }

    @app.get("/api/state")
    def state() -> Dict[str, Any]:
        return snapshot_message(store.snapshot())

    @app.get("/api/events")
    def events(
        cursor: int = Query(0, ge=0),
        limit: Optional[int] = Query(None, ge=1, le=1000),
    ) -> Dict[str, Any]:
        batch = store.events.since(cursor, limit)
        return {
            "cursor": store.events.cursor,
            "events": [event.to_document() for event in batch],
        }

    @app.get("/api/logs")
    def logs() -> Dict[str, Any]:
        return logs_update_message(store.events.cursor, render_lines(store.events))

    # ------------------------------------------------------------
    # WebSocket
    # ------------------------------------------------------------

    @app.websocket("/ws")
    async def observer_socket(websocket: WebSocket):
        await websocket.accept()
        channel = hub.register(loop=asyncio.get_running_loop())
        sender = asyncio.create_task(_pump(websocket, channel))

        try:
            while True:
                raw = await websocket.receive_text()
                _handle_request(store, hub, channel, raw)
        except WebSocketDisconnect:
            log.info(f"Observer {channel.observer_id} disconnected")
        finally:
            hub.unregister(channel)
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)

    return app


async def _pump(websocket: WebSocket, channel: ObserverChannel) -> None:
    while True:
        batch = await channel.receive()
        if not batch:
            return
        for message in batch:
            await websocket.send_json(message)


def _handle_request(
    store: RaceStateStore,
    hub: BroadcastHub,
    channel: ObserverChannel,
    raw: str,
) -> None:
    try:
        request = json.loads(raw)
    except json.JSONDecodeError:
        log.warning(f"Observer {channel.observer_id} sent invalid JSON; ignored")
        return

    kind = request.get("type") if isinstance(request, dict) else None

    if kind == REQUEST_TEAMS:
        hub.request_teams(channel)
    elif kind == REQUEST_LOGS:
        events = store.events
        hub.send(channel, logs_update_message(events.cursor, render_lines(events)))
    else:
        log.warning(f"Observer {channel.observer_id} sent unknown request {kind!r}")


# ------------------------------------------------------------
# Server lifecycle
# ------------------------------------------------------------

class ObserverServer:
    """
    uvicorn server run as a task on the runtime's event loop.
    """

    def __init__(self, app: FastAPI, config: ObserverApiConfig):
        self._config = config
        self._server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=config.host,
                port=config.port,
                log_level="info",
            )
        )
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._task is not None:
            return
        log.info(f"Observer API listening on {self._config.host}:{self._config.port}")
        self._task = asyncio.create_task(self._server.serve())

    async def shutdown(self) -> None:
        if self._task is None:
            return
        self._server.should_exit = True
        try:
            await asyncio.wait_for(self._task, timeout=5)
        except asyncio.TimeoutError:
            log.warning("Observer API did not stop in time; cancelling")
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        log.info("Observer API stopped")
