"""
Race state exceptions.

All store-level failures derive from RaceError so producer adapters can
convert them into rejected commands at a single boundary. RaceStateCorrupt
is the exception: it means an invariant was broken and the process should
stop rather than keep serving a damaged state.
"""

from __future__ import annotations

from typing import Any


class RaceError(Exception):
    """Base class for every race engine error."""
    pass


# ============ Team identity ============

class TeamNotFound(RaceError):
    """Operation referenced an unknown team id."""
    def __init__(self, team_id: str):
        self.team_id = team_id
        super().__init__(f"Team {team_id} doesn't exist.")


class TeamAlreadyExists(RaceError):
    """Create or rename collided with an existing team id."""
    def __init__(self, team_id: str):
        self.team_id = team_id
        super().__init__(f"Team {team_id} already exists!")


class TeamAlreadyFinished(RaceError):
    """Roll requested for a team that already reached the last tile."""
    def __init__(self, team_id: str):
        self.team_id = team_id
        super().__init__(f"Team {team_id} has already finished the race.")


# ============ Ranges / configuration ============

class OutOfRange(RaceError):
    """A position, die value or hazard distance is outside its valid range."""
    def __init__(self, field: str, value: Any, message: str | None = None):
        self.field = field
        self.value = value
        super().__init__(message or f"{field} out of range: {value!r}")


class InvalidHazardConfig(RaceError):
    """Board hazard configuration is ambiguous (overlapping tiles)."""
    pass


# ============ Internal ============

class RaceStateCorrupt(RaceError):
    """An invariant was violated; the store can no longer be trusted."""
    pass


class EventLogStorageError(RaceStateCorrupt):
    """The event journal could not be written."""
    pass
