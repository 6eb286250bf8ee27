"""
Broadcast Hub: fan-out of accepted mutations to connected observers.

race store ──(events)──> hub ──(per-observer channel)──> observer adapter

Ordering rules:
- The hub delivers events in Event Log order, whatever order publish() is
  called in; each event is rendered once and offered to every channel.
- A new channel is seeded with a store snapshot before anything else, and
  drops every later event already covered by that snapshot, so an observer
  never sees a gap or a duplicate.
- Channels are bounded. A channel that falls too far behind loses its
  backlog and is re-seeded with a fresh snapshot.

Offering to a channel never blocks and never raises into the hub; the
observer adapter drains its channel on its own task.
"""

from __future__ import annotations

import asyncio
import itertools
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from core.race.events import MutationEvent
from core.race.store import RaceStateStore
from core.race.wire import event_messages, snapshot_message, teams_update_message
from shared.logging.logger import get_logger

log = get_logger("core.race.hub")

DEFAULT_MAX_PENDING = 256


class ObserverChannel:
    """
    Per-observer message buffer.

    Producers (the hub) call offer()/push() from any thread; the consumer
    drains with drain() or awaits receive() on the event loop it was
    registered from.
    """

    def __init__(
        self,
        observer_id: str,
        *,
        max_pending: int = DEFAULT_MAX_PENDING,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.observer_id = observer_id
        self._max_pending = max(1, int(max_pending))
        self._pending: Deque[Dict[str, Any]] = deque()
        self._lock = threading.Lock()
        self._cursor = 0
        self._closed = False
        self._loop = loop
        self._wakeup = asyncio.Event()
        self.resyncs = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def cursor(self) -> int:
        """Seq of the newest event this observer has been given."""
        with self._lock:
            return self._cursor

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    # ------------------------------------------------------------------
    # Producer side (hub)
    # ------------------------------------------------------------------

    def reset(self, snapshot: Dict[str, Any], cursor: int) -> None:
        """Replace anything pending with a snapshot message."""
        with self._lock:
            self._pending.clear()
            self._pending.append(snapshot)
            self._cursor = cursor
        self._notify()

    def offer(self, seq: int, messages: List[Dict[str, Any]]) -> bool:
        """
        Queue the messages rendered for event seq.

        Events at or below the channel cursor are already covered and are
        dropped. An empty buffer always takes the whole batch; otherwise
        returns False when the backlog would overflow. Nothing is queued in
        that case and the caller must re-seed the channel.
        """
        with self._lock:
            if self._closed or seq <= self._cursor:
                return True
            if self._overflows(len(messages)):
                return False
            self._pending.extend(messages)
            self._cursor = seq
        self._notify()
        return True

    def push(self, message: Dict[str, Any]) -> bool:
        """Queue a message that is not tied to a new event (request replies)."""
        with self._lock:
            if self._closed:
                return True
            if self._overflows(1):
                return False
            self._pending.append(message)
        self._notify()
        return True

    def _overflows(self, incoming: int) -> bool:
        # caller holds self._lock
        return bool(self._pending) and len(self._pending) + incoming > self._max_pending

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._pending.clear()
        self._notify()

    def _notify(self) -> None:
        loop = self._loop
        if loop is None:
            self._wakeup.set()
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._wakeup.set()
            return

        try:
            loop.call_soon_threadsafe(self._wakeup.set)
        except RuntimeError:
            # Observer's loop already closed; nothing left to wake.
            pass

    # ------------------------------------------------------------------
    # Consumer side (observer adapter)
    # ------------------------------------------------------------------

    def drain(self) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self._pending)
            self._pending.clear()
        return items

    async def receive(self) -> List[Dict[str, Any]]:
        """
        Wait for the next batch of messages.

        Returns an empty list once the channel is closed.
        """
        while True:
            self._wakeup.clear()
            items = self.drain()
            if items:
                return items
            if self._closed:
                return []
            await self._wakeup.wait()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while True:
            batch = await self.receive()
            if not batch:
                return
            for message in batch:
                yield message


class BroadcastHub:
    def __init__(self, store: RaceStateStore, *, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self._store = store
        self._max_pending = max(1, int(max_pending))
        self._lock = threading.RLock()
        self._channels: Dict[str, ObserverChannel] = {}
        self._ids = itertools.count(1)

        snapshot = store.snapshot()
        self._replica = RaceStateStore.from_snapshot(snapshot)
        self._cursor = snapshot.cursor

        self._metrics = {
            "published": 0,
            "delivery_failures": 0,
            "resyncs": 0,
        }

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def cursor(self) -> int:
        """Seq of the newest event fanned out."""
        with self._lock:
            return self._cursor

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._channels)

    def get_metrics(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._metrics, observers=len(self._channels), cursor=self._cursor)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        observer_id: Optional[str] = None,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> ObserverChannel:
        """
        Register an observer and seed it with a full snapshot.

        Must be called from the observer's event loop (or given that loop)
        for receive() to be woken up; drain() works from anywhere.
        """
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None

        with self._lock:
            observer_id = observer_id or f"observer-{next(self._ids)}"
            previous = self._channels.pop(observer_id, None)
            if previous is not None:
                previous.close()

            channel = ObserverChannel(observer_id, max_pending=self._max_pending, loop=loop)
            self._seed(channel)
            self._channels[observer_id] = channel

        log.info(f"Observer {observer_id} registered at cursor {channel.cursor}")
        return channel

    def unregister(self, channel: ObserverChannel) -> None:
        with self._lock:
            if self._channels.get(channel.observer_id) is channel:
                del self._channels[channel.observer_id]
        channel.close()
        log.info(f"Observer {channel.observer_id} unregistered")

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def publish(self, event: Optional[MutationEvent] = None) -> int:
        """
        Deliver every logged event not yet fanned out.

        event is the mutation the caller just committed; it is always part
        of the delivered range because the store logs before returning.
        Returns the number of events delivered by this call.
        """
        with self._lock:
            if event is not None and event.seq > self._store.events.cursor:
                log.warning(
                    f"publish() got event {event.seq} beyond store cursor "
                    f"{self._store.events.cursor}; ignoring it"
                )
            return self._drain_log()

    def request_teams(self, channel: ObserverChannel) -> None:
        """Queue a teamsUpdate consistent with what the channel has been sent."""
        with self._lock:
            self._drain_log()
            message = teams_update_message(self._cursor, self._replica.standings())
            self._push(channel, message)

    def send(self, channel: ObserverChannel, message: Dict[str, Any]) -> None:
        """Queue an out-of-band message (e.g. a logs reply) in order."""
        with self._lock:
            self._push(channel, message)

    # ------------------------------------------------------------------
    # Internals (caller holds self._lock)
    # ------------------------------------------------------------------

    def _drain_log(self) -> int:
        delivered = 0
        for event in self._store.events.since(self._cursor):
            dwell = self._replica.apply(event)
            messages = event_messages(event, dwell, self._replica.standings())
            self._cursor = event.seq
            self._fan_out(event.seq, messages)
            delivered += 1
        self._metrics["published"] += delivered
        return delivered

    def _fan_out(self, seq: int, messages: List[Dict[str, Any]]) -> None:
        for channel in list(self._channels.values()):
            try:
                if not channel.offer(seq, messages):
                    self._resync(channel)
            except Exception as e:
                self._metrics["delivery_failures"] += 1
                log.error(f"Delivery of event {seq} to {channel.observer_id} failed: {e}")

    def _push(self, channel: ObserverChannel, message: Dict[str, Any]) -> None:
        try:
            if not channel.push(message):
                self._resync(channel)
        except Exception as e:
            self._metrics["delivery_failures"] += 1
            log.error(f"Direct send to {channel.observer_id} failed: {e}")

    def _resync(self, channel: ObserverChannel) -> None:
        log.warning(
            f"Observer {channel.observer_id} fell behind "
            f"({channel.pending} pending); resending snapshot"
        )
        channel.resyncs += 1
        self._metrics["resyncs"] += 1
        self._seed(channel)

    def _seed(self, channel: ObserverChannel) -> None:
        snapshot = self._store.snapshot()
        channel.reset(snapshot_message(snapshot), snapshot.cursor)
