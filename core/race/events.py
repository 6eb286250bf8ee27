"""Canonical mutation events accepted by the race store."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Dict, Optional, Type

from core.race.errors import RaceStateCorrupt


@dataclass(frozen=True, kw_only=True)
class MutationEvent:
    """
    Base for every accepted mutation.

    seq is the event's position in the Event Log (1-based). actor and origin
    are audit context only (who issued the command and from where); replay
    never depends on them.
    """

    type: ClassVar[str] = "mutation"

    seq: int
    ts: float
    team_id: str
    actor: Optional[str] = None
    origin: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["type"] = self.type
        return payload


@dataclass(frozen=True, kw_only=True)
class TeamCreated(MutationEvent):
    type: ClassVar[str] = "team_created"

    display_name: str
    position: int = 1


@dataclass(frozen=True, kw_only=True)
class TeamRolled(MutationEvent):
    type: ClassVar[str] = "team_rolled"

    roll: int
    old_position: int
    tentative: int
    new_position: int
    hazard: Optional[str] = None
    finished: bool = False
    finished_now: bool = False


@dataclass(frozen=True, kw_only=True)
class TeamPositionSet(MutationEvent):
    type: ClassVar[str] = "team_position_set"

    old_position: int
    position: int
    finished: bool = False
    finished_now: bool = False


@dataclass(frozen=True, kw_only=True)
class TeamRenamed(MutationEvent):
    type: ClassVar[str] = "team_renamed"

    new_team_id: str
    new_display_name: str
    old_position: int
    position: int
    finished: bool = False
    finished_now: bool = False


@dataclass(frozen=True, kw_only=True)
class TeamDeleted(MutationEvent):
    type: ClassVar[str] = "team_deleted"

    last_position: Optional[int] = None


EVENT_TYPES: Dict[str, Type[MutationEvent]] = {
    cls.type: cls
    for cls in (TeamCreated, TeamRolled, TeamPositionSet, TeamRenamed, TeamDeleted)
}


def event_from_document(doc: Dict[str, Any]) -> MutationEvent:
    """Rebuild a mutation event from its to_document() form."""
    if not isinstance(doc, dict):
        raise RaceStateCorrupt(f"Event document must be an object, got {type(doc).__name__}")

    event_type = doc.get("type")
    cls = EVENT_TYPES.get(event_type)
    if cls is None:
        raise RaceStateCorrupt(f"Unknown event type: {event_type!r}")

    allowed = {f.name for f in fields(cls)}
    kwargs = {key: value for key, value in doc.items() if key in allowed}
    try:
        return cls(**kwargs)
    except TypeError as exc:
        raise RaceStateCorrupt(f"Malformed {event_type} event: {exc}") from exc


__all__ = [
    "EVENT_TYPES",
    "MutationEvent",
    "TeamCreated",
    "TeamDeleted",
    "TeamPositionSet",
    "TeamRenamed",
    "TeamRolled",
    "event_from_document",
]
