"""
Observer wire messages.

Every message is a JSON-safe dict: {"type": ..., "cursor": seq, "data": {...}}.
cursor is the seq of the event that produced the message (the snapshot
cursor for snapshots), so a dashboard can tell which log position it has
caught up to.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.race.events import (
    MutationEvent,
    TeamCreated,
    TeamRenamed,
    TeamRolled,
)
from core.race.models import RaceSnapshot, TileDwell

SNAPSHOT = "snapshot"
TEAMS_UPDATE = "teamsUpdate"
TEAM_ROLL = "teamRoll"
TEAM_NAME = "teamName"
TEAM_FINISH = "teamFinish"
TEAM_TILE_TIME = "teamTileTime"
TEAM_TILE_START_TIME = "teamTileStartTime"
LOGS_UPDATE = "logsUpdate"

Standings = Iterable[Tuple[str, str, int]]


def envelope(message_type: str, cursor: int, data: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": message_type, "cursor": cursor, "data": data}


def snapshot_message(snapshot: RaceSnapshot) -> Dict[str, Any]:
    return envelope(
        SNAPSHOT,
        snapshot.cursor,
        {
            "teams": [[team_id, position] for team_id, position in snapshot.positions],
            "displayNames": {t.team_id: t.display_name for t in snapshot.teams},
            "finishedTeams": list(snapshot.finished_teams),
            "rolls": {team_id: list(values) for team_id, values in snapshot.rolls.items()},
            "tileTimes": {
                team_id: {str(tile): duration for tile, duration in times.items()}
                for team_id, times in snapshot.tile_times.items()
            },
            "tileStartTimes": {t.team_id: t.tile_started_at for t in snapshot.teams},
        },
    )


def teams_update_message(cursor: int, standings: Standings) -> Dict[str, Any]:
    teams: List[List[Any]] = []
    names: Dict[str, str] = {}
    for team_id, display_name, position in standings:
        teams.append([team_id, position])
        names[team_id] = display_name
    return envelope(TEAMS_UPDATE, cursor, {"teams": teams, "displayNames": names})


def logs_update_message(cursor: int, lines: List[str]) -> Dict[str, Any]:
    return envelope(LOGS_UPDATE, cursor, {"lines": list(lines)})


def _final_team_id(event: MutationEvent) -> str:
    if isinstance(event, TeamRenamed):
        return event.new_team_id
    return event.team_id


def _current_tile(event: MutationEvent) -> Optional[int]:
    for attr in ("new_position", "position"):
        value = getattr(event, attr, None)
        if value is not None:
            return value
    return None


def event_messages(
    event: MutationEvent,
    dwell: Optional[TileDwell],
    standings: Standings,
) -> List[Dict[str, Any]]:
    """
    Render one accepted event into the incremental messages observers get.

    dwell is the tile-dwell record the event closed (None when the team did
    not change tiles); standings is the full position list after the event.
    teamFinish is emitted only for the event that flips finished to true.
    """
    cursor = event.seq
    team_id = _final_team_id(event)
    messages: List[Dict[str, Any]] = []

    if isinstance(event, TeamRolled):
        messages.append(
            envelope(
                TEAM_ROLL,
                cursor,
                {
                    "id": event.team_id,
                    "roll": event.roll,
                    "oldPosition": event.old_position,
                    "newPosition": event.new_position,
                    "tentative": event.tentative,
                    "hazard": event.hazard,
                },
            )
        )
    elif isinstance(event, TeamRenamed):
        messages.append(
            envelope(
                TEAM_NAME,
                cursor,
                {
                    "id": event.team_id,
                    "newId": event.new_team_id,
                    "newDisplayName": event.new_display_name,
                },
            )
        )

    if dwell is not None:
        messages.append(
            envelope(
                TEAM_TILE_TIME,
                cursor,
                {"id": team_id, "tile": dwell.tile, "duration": dwell.duration},
            )
        )

    if dwell is not None or isinstance(event, TeamCreated):
        messages.append(
            envelope(
                TEAM_TILE_START_TIME,
                cursor,
                {"id": team_id, "tile": _current_tile(event), "startedAt": event.ts},
            )
        )

    if getattr(event, "finished_now", False):
        messages.append(envelope(TEAM_FINISH, cursor, {"id": team_id}))

    messages.append(teams_update_message(cursor, standings))
    return messages
