"""
Discord Race Commands (Producer Adapter)

Pure handler for the race slash commands. Each method performs exactly one
store call, publishes the accepted mutation to the Broadcast Hub and returns
a reply dict for the registration layer to send.

Reply contract:
- {"ok": True, "message": str, ...} for accepted commands
- {"ok": False, "message": str} for rejected commands (RaceError)

IMPORTANT CONSTRAINTS:
- This module MUST NOT register commands on import
- This module MUST NOT touch discord.py objects
- RaceStateCorrupt is never converted into a reply; it propagates so the
  runtime can stop
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from core.race.errors import RaceError, RaceStateCorrupt, TeamNotFound
from core.race.events import MutationEvent
from core.race.hub import BroadcastHub
from core.race.store import RaceStateStore
from shared.logging.logger import get_logger
from shared.public_exports.audit import describe_event, render_log
from services.discord.logging import DiscordLogAdapter

log = get_logger("discord.commands.race", runtime="discord")

DISCORD_MESSAGE_LIMIT = 2000


class RaceCommandHandler:
    """
    Declarative handler for race-level Discord commands.

    This class does NOT register commands.
    """

    def __init__(
        self,
        *,
        store: RaceStateStore,
        hub: BroadcastHub,
        logger: DiscordLogAdapter,
        logs_char_limit: int = DISCORD_MESSAGE_LIMIT,
        on_fatal: Optional[Callable[[Exception], None]] = None,
    ):
        self._store = store
        self._hub = hub
        self._logger = logger
        self._logs_char_limit = logs_char_limit
        self._on_fatal = on_fatal

    # --------------------------------------------------
    # Shared execution path
    # --------------------------------------------------

    def _execute(
        self,
        command: str,
        mutate: Callable[[], MutationEvent],
        *,
        user_id: Optional[int],
        guild_id: Optional[int],
        rejected: Optional[Callable[[RaceError], str]] = None,
    ) -> Dict[str, Any]:
        try:
            event = mutate()
        except RaceStateCorrupt as e:
            log.critical(f"Race state corrupt during /{command}: {e}")
            self._logger.log_command(
                command=command,
                guild_id=guild_id,
                user_id=user_id,
                success=False,
                extra={"error": str(e), "fatal": True},
            )
            if self._on_fatal:
                self._on_fatal(e)
            raise
        except RaceError as e:
            message = rejected(e) if rejected else str(e)
            self._logger.log_command(
                command=command,
                guild_id=guild_id,
                user_id=user_id,
                success=False,
                extra={"error": message},
            )
            return {"ok": False, "message": message}

        delivered = self._hub.publish(event)

        self._logger.log_command(
            command=command,
            guild_id=guild_id,
            user_id=user_id,
            success=True,
            extra={"seq": event.seq, "team": event.team_id},
        )

        return {
            "ok": True,
            "message": f"{describe_event(event)}.",
            "event": event.to_document(),
            "delivered": delivered,
        }

    # --------------------------------------------------
    # Commands
    # --------------------------------------------------

    async def cmd_create_team(
        self,
        *,
        user: Optional[str],
        channel: Optional[str],
        team_name: str,
        user_id: Optional[int] = None,
        guild_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self._execute(
            "create-team",
            lambda: self._store.create_team(team_name, actor=user, origin=channel),
            user_id=user_id,
            guild_id=guild_id,
        )

    async def cmd_roll(
        self,
        *,
        user: Optional[str],
        channel: Optional[str],
        user_id: Optional[int] = None,
        guild_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Roll for the team named after the invoking channel.
        """
        if not (channel or "").strip():
            message = "Use /roll in a team channel; this channel has no team name."
            self._logger.log_command(
                command="roll",
                guild_id=guild_id,
                user_id=user_id,
                success=False,
                extra={"error": message},
            )
            return {"ok": False, "message": message}

        def _rejected(error: RaceError) -> str:
            if isinstance(error, TeamNotFound):
                return f"{error} Use /create-team to create it."
            return str(error)

        return self._execute(
            "roll",
            lambda: self._store.roll_for_team(channel, actor=user, origin=channel),
            user_id=user_id,
            guild_id=guild_id,
            rejected=_rejected,
        )

    async def cmd_edit_team(
        self,
        *,
        user: Optional[str],
        channel: Optional[str],
        team_name: str,
        position: int,
        user_id: Optional[int] = None,
        guild_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self._execute(
            "edit-team",
            lambda: self._store.set_position(
                team_name, position, actor=user, origin=channel
            ),
            user_id=user_id,
            guild_id=guild_id,
            rejected=_position_rejected,
        )

    async def cmd_edit_team_name(
        self,
        *,
        user: Optional[str],
        channel: Optional[str],
        team_name: str,
        new_team_name: str,
        position: int,
        user_id: Optional[int] = None,
        guild_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self._execute(
            "edit-team-name",
            lambda: self._store.rename_team(
                team_name,
                new_team_name,
                position=position,
                actor=user,
                origin=channel,
            ),
            user_id=user_id,
            guild_id=guild_id,
            rejected=_position_rejected,
        )

    async def cmd_delete_team(
        self,
        *,
        user: Optional[str],
        channel: Optional[str],
        team_name: str,
        user_id: Optional[int] = None,
        guild_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self._execute(
            "delete-team",
            lambda: self._store.delete_team(team_name, actor=user, origin=channel),
            user_id=user_id,
            guild_id=guild_id,
        )

    async def cmd_logs(
        self,
        *,
        user_id: Optional[int] = None,
        guild_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Render the audit log, oldest first, cut to the Discord message limit.
        """
        text = render_log(self._store.events, limit_chars=self._logs_char_limit)

        self._logger.log_command(
            command="logs",
            guild_id=guild_id,
            user_id=user_id,
            success=True,
            extra={"cursor": self._store.events.cursor},
        )

        return {"ok": True, "message": text}


def _position_rejected(error: RaceError) -> str:
    if getattr(error, "field", None) == "position":
        return "Position must be between 1 and 100."
    return str(error)
