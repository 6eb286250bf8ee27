"""
Audit-log text rendering.

The race core only produces typed mutation events; this module turns them
into the human-readable lines shown by the /logs command and the
dashboard's log panel. Nothing here touches race state.
"""
from __future__ import annotations

from typing import Iterable, List, Optional

from core.race.events import (
    MutationEvent,
    TeamCreated,
    TeamDeleted,
    TeamPositionSet,
    TeamRenamed,
    TeamRolled,
)
from core.race.models import iso_from_ts

EMPTY_LOG_TEXT = "No logs available."


def describe_event(event: MutationEvent) -> str:
    if isinstance(event, TeamCreated):
        return f"Created team {event.team_id} at position {event.position}"

    if isinstance(event, TeamRolled):
        text = (
            f"{event.team_id} rolled a {event.roll}! "
            f"New position: {event.new_position} (was at {event.old_position})"
        )
        if event.hazard:
            text += f" [{event.hazard} at {event.tentative}]"
        if event.finished_now:
            text += " Finished!"
        return text

    if isinstance(event, TeamPositionSet):
        return f"Updated {event.team_id} to position {event.position}"

    if isinstance(event, TeamRenamed):
        return f"Renamed {event.team_id} to {event.new_team_id} at position {event.position}"

    if isinstance(event, TeamDeleted):
        return f"Deleted team {event.team_id}"

    return f"{event.type} for {event.team_id}"


def render_event(event: MutationEvent) -> str:
    line = f"[{iso_from_ts(event.ts)}] "
    if event.actor or event.origin:
        line += f"{event.actor or 'unknown'} in #{event.origin or 'unknown'} - "
    return line + describe_event(event)


def render_lines(events: Iterable[MutationEvent]) -> List[str]:
    return [render_event(event) for event in events]


def render_log(events: Iterable[MutationEvent], limit_chars: Optional[int] = None) -> str:
    """
    Join rendered lines, oldest first.

    With limit_chars the text is cut to fit (chat message limits), ending in
    "..." when truncated.
    """
    text = "\n".join(render_lines(events)) or EMPTY_LOG_TEXT
    if limit_chars is not None and len(text) > limit_chars:
        return text[: max(0, limit_chars - 3)] + "..."
    return text
