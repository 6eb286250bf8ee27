"""
Discord Logging Adapter (Producer Adapter)

Normalizes Discord-originated events (lifecycle, command executions) into
structured log lines on the Discord runtime log, and keeps a bounded
in-memory history of recent command outcomes for diagnostics.

IMPORTANT:
- This module MUST NOT send network requests
- This module MUST NOT depend on discord.py objects directly
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List, Optional

from shared.logging.logger import get_logger

log = get_logger("discord.logging", runtime="discord")


class DiscordLogAdapter:
    """
    Structured logger for Discord runtime events.
    """

    def __init__(self, history_size: int = 200):
        self._history: Deque[Dict[str, Any]] = deque(maxlen=max(1, history_size))

    # --------------------------------------------------
    # Structured Event Hooks
    # --------------------------------------------------

    def log_event(
        self,
        *,
        event: str,
        level: str = "info",
        guild_id: Optional[int] = None,
        user_id: Optional[int] = None,
        channel_id: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        """
        Record a structured Discord event.
        """

        payload = {
            "event": event,
            "guild_id": guild_id,
            "user_id": user_id,
            "channel_id": channel_id,
            "data": data or {},
        }

        if level == "debug":
            log.debug(f"Discord event: {payload}")
        elif level == "warning":
            log.warning(f"Discord event: {payload}")
        elif level == "error":
            log.error(f"Discord event: {payload}")
        else:
            log.info(f"Discord event: {payload}")

    # --------------------------------------------------
    # Convenience Helpers
    # --------------------------------------------------

    def log_startup(self):
        self.log_event(event="discord_startup")

    def log_shutdown(self):
        self.log_event(event="discord_shutdown")

    def log_command(
        self,
        *,
        command: str,
        guild_id: Optional[int],
        user_id: Optional[int],
        success: bool,
        extra: Optional[Dict[str, Any]] = None,
    ):
        """Log a Discord slash command execution."""
        record = {
            "command": command,
            "success": success,
            "extra": extra or {},
        }
        self._history.append(dict(record, guild_id=guild_id, user_id=user_id))

        self.log_event(
            event="discord_command",
            level="info" if success else "warning",
            data=record,
            guild_id=guild_id,
            user_id=user_id,
        )

    def recent_commands(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Most recent command records, oldest first."""
        items = list(self._history)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items
