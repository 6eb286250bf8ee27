"""
Race-state synchronization engine.

board      → pure dice/hazard resolution
store      → authoritative team state (serialized mutations, snapshots)
event_log  → append-only ordered record of accepted mutations
hub        → snapshot-then-tail fan-out to observers
wire       → observer message shapes
"""

from core.race.board import BoardHazards, Dice, HazardKind, RollOutcome, resolve_roll
from core.race.errors import (
    EventLogStorageError,
    InvalidHazardConfig,
    OutOfRange,
    RaceError,
    RaceStateCorrupt,
    TeamAlreadyExists,
    TeamAlreadyFinished,
    TeamNotFound,
)
from core.race.event_log import EventLog, load_journal
from core.race.events import (
    MutationEvent,
    TeamCreated,
    TeamDeleted,
    TeamPositionSet,
    TeamRenamed,
    TeamRolled,
    event_from_document,
)
from core.race.hub import BroadcastHub, ObserverChannel
from core.race.models import RaceSnapshot, RollRecord, TeamView, TileDwell
from core.race.store import RaceStateStore

__all__ = [
    "BoardHazards",
    "BroadcastHub",
    "Dice",
    "EventLog",
    "EventLogStorageError",
    "HazardKind",
    "InvalidHazardConfig",
    "MutationEvent",
    "ObserverChannel",
    "OutOfRange",
    "RaceError",
    "RaceSnapshot",
    "RaceStateCorrupt",
    "RaceStateStore",
    "RollOutcome",
    "RollRecord",
    "TeamAlreadyExists",
    "TeamAlreadyFinished",
    "TeamCreated",
    "TeamDeleted",
    "TeamNotFound",
    "TeamPositionSet",
    "TeamRenamed",
    "TeamRolled",
    "TeamView",
    "TileDwell",
    "event_from_document",
    "load_journal",
    "resolve_roll",
]
