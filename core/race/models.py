"""
Race data model.

Team is the store's private, mutable record. Everything handed out of the
store (TeamView, RaceSnapshot) is an immutable copy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


def iso_from_ts(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class RollRecord:
    team_id: str
    value: int
    position: int
    ts: float


@dataclass(frozen=True)
class TileDwell:
    team_id: str
    tile: int
    duration: float


@dataclass
class Team:
    """
    Mutable team record owned exclusively by RaceStateStore.
    """

    team_id: str
    display_name: str
    position: int
    tile_started_at: float
    finished: bool = False
    rolls: List[RollRecord] = field(default_factory=list)
    dwells: List[TileDwell] = field(default_factory=list)

    def tile_times(self) -> Dict[int, float]:
        totals: Dict[int, float] = {}
        for dwell in self.dwells:
            totals[dwell.tile] = totals.get(dwell.tile, 0.0) + dwell.duration
        return totals

    def view(self) -> "TeamView":
        return TeamView(
            team_id=self.team_id,
            display_name=self.display_name,
            position=self.position,
            finished=self.finished,
            tile_started_at=self.tile_started_at,
            rolls=tuple(self.rolls),
            dwells=tuple(self.dwells),
        )


@dataclass(frozen=True)
class TeamView:
    """Read-only copy of a team, safe to share across threads."""

    team_id: str
    display_name: str
    position: int
    finished: bool
    tile_started_at: float
    rolls: Tuple[RollRecord, ...] = ()
    dwells: Tuple[TileDwell, ...] = ()

    @property
    def roll_values(self) -> Tuple[int, ...]:
        return tuple(r.value for r in self.rolls)

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.team_id,
            "displayName": self.display_name,
            "position": self.position,
            "finished": self.finished,
            "tileStartedAt": self.tile_started_at,
            "rolls": list(self.roll_values),
        }


@dataclass(frozen=True)
class RaceSnapshot:
    """
    Consistent, immutable view of the whole race at a log cursor.

    cursor is the seq of the last event reflected in this snapshot (0 when
    no event has been accepted yet).
    """

    cursor: int
    teams: Tuple[TeamView, ...]
    generated_at: Optional[float] = None

    @property
    def positions(self) -> Tuple[Tuple[str, int], ...]:
        return tuple((t.team_id, t.position) for t in self.teams)

    @property
    def finished_teams(self) -> Tuple[str, ...]:
        return tuple(t.team_id for t in self.teams if t.finished)

    @property
    def rolls(self) -> Mapping[str, Tuple[int, ...]]:
        return MappingProxyType({t.team_id: t.roll_values for t in self.teams})

    @property
    def tile_times(self) -> Mapping[str, Mapping[int, float]]:
        result = {}
        for team in self.teams:
            totals: Dict[int, float] = {}
            for dwell in team.dwells:
                totals[dwell.tile] = totals.get(dwell.tile, 0.0) + dwell.duration
            result[team.team_id] = MappingProxyType(totals)
        return MappingProxyType(result)

    def team(self, team_id: str) -> Optional[TeamView]:
        for team in self.teams:
            if team.team_id == team_id:
                return team
        return None

    def state_key(self) -> Tuple:
        """
        Comparable representation of the race state, ignoring when the
        snapshot was taken.
        """
        return (self.cursor, self.teams)

    def to_document(self) -> Dict[str, Any]:
        return {
            "cursor": self.cursor,
            "generated_at": iso_from_ts(self.generated_at) if self.generated_at else None,
            "teams": [team.to_document() for team in self.teams],
            "finishedTeams": list(self.finished_teams),
            "tileTimes": {
                team_id: {str(tile): duration for tile, duration in times.items()}
                for team_id, times in self.tile_times.items()
            },
        }
