"""
Race State Store: the authoritative team → position state.

Responsibilities:
1. Validate and accept mutations (create, roll, set position, rename, delete)
2. Keep derived history (rolls, tile dwell times, finish flags)
3. Append every accepted mutation to the Event Log
4. Hand out immutable snapshots

Rules:
- One lock serializes every mutation; it covers validation, the state
  change and the log append, and is released before anything is broadcast.
- Live mutations and replay go through the same apply path, so replaying
  the log always reproduces the live state.
- Nothing outside this module holds a writable reference to a Team.
"""

from __future__ import annotations

import threading
import time
from dataclasses import replace
from typing import Callable, Dict, Iterable, Optional, Tuple

from core.race.board import (
    BOARD_SIZE,
    BOARD_START,
    BoardHazards,
    Dice,
    check_position,
    resolve_roll,
)
from core.race.errors import (
    EventLogStorageError,
    OutOfRange,
    RaceStateCorrupt,
    TeamAlreadyExists,
    TeamAlreadyFinished,
    TeamNotFound,
)
from core.race.event_log import EventLog
from core.race.events import (
    MutationEvent,
    TeamCreated,
    TeamDeleted,
    TeamPositionSet,
    TeamRenamed,
    TeamRolled,
)
from core.race.models import RaceSnapshot, RollRecord, Team, TeamView, TileDwell
from shared.logging.logger import get_logger

log = get_logger("core.race.store")


def _normalize_team_id(team_id: str) -> str:
    value = str(team_id or "").strip()
    if not value:
        raise OutOfRange("team id", team_id, "Team id must not be blank")
    return value


class RaceStateStore:
    def __init__(
        self,
        hazards: BoardHazards | None = None,
        *,
        dice: Dice | None = None,
        clock: Callable[[], float] | None = None,
        event_log: EventLog | None = None,
    ) -> None:
        self._hazards = hazards or BoardHazards.empty()
        self._dice = dice or Dice()
        self._clock = clock or time.time
        self._log = event_log if event_log is not None else EventLog()
        self._teams: Dict[str, Team] = {}
        self._lock = threading.Lock()
        self._corrupt = False

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def replay(
        cls,
        events: Iterable[MutationEvent],
        hazards: BoardHazards | None = None,
        **kwargs,
    ) -> "RaceStateStore":
        """Build a store by applying events in order to an empty state."""
        store = cls(hazards, **kwargs)
        for event in events:
            store.apply(event)
        return store

    @classmethod
    def from_snapshot(
        cls,
        snapshot: RaceSnapshot,
        hazards: BoardHazards | None = None,
        **kwargs,
    ) -> "RaceStateStore":
        """
        Build a store positioned at snapshot.cursor.

        The new store's log starts after the snapshot, so it accepts the
        events that follow it and nothing earlier.
        """
        kwargs.setdefault("event_log", EventLog(base_cursor=snapshot.cursor))
        store = cls(hazards, **kwargs)
        for view in snapshot.teams:
            store._teams[view.team_id] = Team(
                team_id=view.team_id,
                display_name=view.display_name,
                position=view.position,
                tile_started_at=view.tile_started_at,
                finished=view.finished,
                rolls=list(view.rolls),
                dwells=list(view.dwells),
            )
        return store

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def events(self) -> EventLog:
        return self._log

    @property
    def hazards(self) -> BoardHazards:
        return self._hazards

    def set_hazards(self, hazards: BoardHazards) -> None:
        """Swap the hazard configuration used by subsequent rolls."""
        with self._lock:
            self._hazards = hazards
        log.info(
            f"Board hazards updated: stops={len(hazards.stops)} "
            f"chutes={len(hazards.chutes)} ladders={len(hazards.ladders)}"
        )

    def has_team(self, team_id: str) -> bool:
        with self._lock:
            return str(team_id).strip() in self._teams

    def get_team(self, team_id: str) -> TeamView:
        with self._lock:
            team = self._teams.get(str(team_id).strip())
            if team is None:
                raise TeamNotFound(team_id)
            return team.view()

    def standings(self) -> Tuple[Tuple[str, str, int], ...]:
        """(team_id, display_name, position) for every team, creation order."""
        with self._lock:
            return tuple(
                (team.team_id, team.display_name, team.position)
                for team in self._teams.values()
            )

    def snapshot(self) -> RaceSnapshot:
        """
        Consistent copy of every team at the current log cursor.

        Taken under the mutation lock, so it never reflects a mutation that
        has not been appended to the Event Log.
        """
        with self._lock:
            return RaceSnapshot(
                cursor=self._log.cursor,
                teams=tuple(team.view() for team in self._teams.values()),
                generated_at=self._clock(),
            )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_team(
        self,
        team_id: str,
        display_name: Optional[str] = None,
        *,
        actor: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> TeamCreated:
        team_id = _normalize_team_id(team_id)
        display_name = (display_name or "").strip() or team_id

        with self._lock:
            self._check_healthy()
            if team_id in self._teams:
                raise TeamAlreadyExists(team_id)

            event = TeamCreated(
                seq=self._log.next_seq,
                ts=self._clock(),
                team_id=team_id,
                display_name=display_name,
                position=BOARD_START,
                actor=actor,
                origin=origin,
            )
            self._commit(event)

        log.info(f"Created team {team_id} ({display_name}) at position {BOARD_START}")
        return event

    def roll_for_team(
        self,
        team_id: str,
        *,
        actor: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> TeamRolled:
        team_id = str(team_id or "").strip()

        with self._lock:
            self._check_healthy()
            team = self._require(team_id)
            if team.finished:
                raise TeamAlreadyFinished(team_id)

            value = self._dice.roll()
            outcome = resolve_roll(team.position, value, self._hazards)

            event = TeamRolled(
                seq=self._log.next_seq,
                ts=self._clock(),
                team_id=team_id,
                roll=value,
                old_position=team.position,
                tentative=outcome.tentative,
                new_position=outcome.position,
                hazard=outcome.hazard.value if outcome.hazard else None,
                finished=outcome.finished,
                finished_now=outcome.finished and not team.finished,
                actor=actor,
                origin=origin,
            )
            self._commit(event)

        log.info(
            f"Team {team_id} rolled {value}: {event.old_position} -> {event.new_position}"
            + (f" ({event.hazard} at {event.tentative})" if event.hazard else "")
            + (" FINISHED" if event.finished_now else "")
        )
        return event

    def set_position(
        self,
        team_id: str,
        position: int,
        *,
        actor: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> TeamPositionSet:
        team_id = str(team_id or "").strip()

        with self._lock:
            self._check_healthy()
            team = self._require(team_id)
            check_position(position)

            finished = position == BOARD_SIZE
            event = TeamPositionSet(
                seq=self._log.next_seq,
                ts=self._clock(),
                team_id=team_id,
                old_position=team.position,
                position=position,
                finished=finished,
                finished_now=finished and not team.finished,
                actor=actor,
                origin=origin,
            )
            self._commit(event)

        log.info(f"Set team {team_id} position {event.old_position} -> {position}")
        return event

    def rename_team(
        self,
        team_id: str,
        new_team_id: str,
        new_display_name: Optional[str] = None,
        position: Optional[int] = None,
        *,
        actor: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> TeamRenamed:
        """
        Replace a team's identity atomically.

        History moves with the team. position follows set_position rules;
        None keeps the current position.
        """
        team_id = str(team_id or "").strip()
        new_team_id = _normalize_team_id(new_team_id)
        new_display_name = (new_display_name or "").strip() or new_team_id

        with self._lock:
            self._check_healthy()
            team = self._require(team_id)
            if new_team_id != team_id and new_team_id in self._teams:
                raise TeamAlreadyExists(new_team_id)

            target = team.position if position is None else check_position(position)
            finished = target == BOARD_SIZE if position is not None else team.finished
            event = TeamRenamed(
                seq=self._log.next_seq,
                ts=self._clock(),
                team_id=team_id,
                new_team_id=new_team_id,
                new_display_name=new_display_name,
                old_position=team.position,
                position=target,
                finished=finished,
                finished_now=finished and not team.finished,
                actor=actor,
                origin=origin,
            )
            self._commit(event)

        log.info(f"Renamed team {team_id} -> {new_team_id} at position {event.position}")
        return event

    def delete_team(
        self,
        team_id: str,
        *,
        actor: Optional[str] = None,
        origin: Optional[str] = None,
    ) -> TeamDeleted:
        team_id = str(team_id or "").strip()

        with self._lock:
            self._check_healthy()
            team = self._require(team_id)
            event = TeamDeleted(
                seq=self._log.next_seq,
                ts=self._clock(),
                team_id=team_id,
                last_position=team.position,
                actor=actor,
                origin=origin,
            )
            self._commit(event)

        log.info(f"Deleted team {team_id}")
        return event

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def apply(self, event: MutationEvent) -> Optional[TileDwell]:
        """
        Apply an already-accepted event (replay / replica path).

        Returns the dwell record closed by the event, if the team left a tile.
        """
        with self._lock:
            self._check_healthy()
            if event.seq != self._log.next_seq:
                raise RaceStateCorrupt(
                    f"Cannot apply event {event.seq}; store is at cursor {self._log.cursor}"
                )
            return self._commit(event)

    # ------------------------------------------------------------------
    # Internals (caller holds self._lock)
    # ------------------------------------------------------------------

    def _check_healthy(self) -> None:
        if self._corrupt:
            raise RaceStateCorrupt("Race state store is corrupt; refusing further operations")

    def _require(self, team_id: str) -> Team:
        team = self._teams.get(team_id)
        if team is None:
            raise TeamNotFound(team_id)
        return team

    def _commit(self, event: MutationEvent) -> Optional[TileDwell]:
        # State first, then the log; both happen before the lock is released.
        try:
            dwell = self._apply_locked(event)
        except RaceStateCorrupt:
            self._corrupt = True
            raise
        try:
            self._log.append(event)
        except (EventLogStorageError, RaceStateCorrupt):
            self._corrupt = True
            log.critical(f"Event {event.seq} applied but not logged; store marked corrupt")
            raise
        return dwell

    def _apply_locked(self, event: MutationEvent) -> Optional[TileDwell]:
        if isinstance(event, TeamCreated):
            if event.team_id in self._teams:
                raise RaceStateCorrupt(f"Event {event.seq} recreates existing team {event.team_id}")
            self._check_event_position(event, event.position)
            self._teams[event.team_id] = Team(
                team_id=event.team_id,
                display_name=event.display_name,
                position=event.position,
                tile_started_at=event.ts,
            )
            return None

        team = self._teams.get(event.team_id)
        if team is None:
            raise RaceStateCorrupt(f"Event {event.seq} references unknown team {event.team_id}")

        if isinstance(event, TeamRolled):
            if event.old_position != team.position:
                raise RaceStateCorrupt(
                    f"Event {event.seq} expects {event.team_id} at {event.old_position}, "
                    f"found {team.position}"
                )
            self._check_event_position(event, event.new_position)
            team.rolls.append(
                RollRecord(
                    team_id=team.team_id,
                    value=event.roll,
                    position=event.new_position,
                    ts=event.ts,
                )
            )
            dwell = self._move(team, event.new_position, event.ts)
            if event.finished:
                team.finished = True
            return dwell

        if isinstance(event, TeamPositionSet):
            self._check_event_position(event, event.position)
            dwell = self._move(team, event.position, event.ts)
            team.finished = event.finished
            return dwell

        if isinstance(event, TeamRenamed):
            self._check_event_position(event, event.position)
            if event.new_team_id != event.team_id and event.new_team_id in self._teams:
                raise RaceStateCorrupt(
                    f"Event {event.seq} renames onto existing team {event.new_team_id}"
                )
            self._rekey(team, event.new_team_id, event.new_display_name)
            dwell = self._move(team, event.position, event.ts)
            team.finished = event.finished
            return dwell

        if isinstance(event, TeamDeleted):
            del self._teams[event.team_id]
            return None

        raise RaceStateCorrupt(f"Unsupported event type: {type(event).__name__}")

    @staticmethod
    def _check_event_position(event: MutationEvent, position: int) -> None:
        try:
            check_position(position)
        except OutOfRange as exc:
            raise RaceStateCorrupt(f"Event {event.seq} carries invalid position: {exc}") from exc

    @staticmethod
    def _move(team: Team, position: int, ts: float) -> Optional[TileDwell]:
        if position == team.position:
            return None
        dwell = TileDwell(
            team_id=team.team_id,
            tile=team.position,
            duration=max(0.0, ts - team.tile_started_at),
        )
        team.dwells.append(dwell)
        team.position = position
        team.tile_started_at = ts
        return dwell

    def _rekey(self, team: Team, new_team_id: str, new_display_name: str) -> None:
        old_team_id = team.team_id
        team.display_name = new_display_name
        if new_team_id == old_team_id:
            return

        team.team_id = new_team_id
        team.rolls = [replace(r, team_id=new_team_id) for r in team.rolls]
        team.dwells = [replace(d, team_id=new_team_id) for d in team.dwells]

        # Keep the team's slot in creation order.
        self._teams = {
            (new_team_id if key == old_team_id else key): value
            for key, value in self._teams.items()
        }
