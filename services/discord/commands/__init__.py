"""
Discord Command Package (Producer Adapter)

This package centralizes registration for the race command surface.

- race           → pure RaceCommandHandler (store + hub calls)
- race_commands  → slash-command registration over the handler

IMPORTANT DESIGN RULES:
- No command registration on import
- No Discord client ownership
- Explicit setup() calls only
"""

from __future__ import annotations

from typing import Optional

from discord.ext import commands

from shared.logging.logger import get_logger

from services.discord.commands import race_commands
from services.discord.commands.race import RaceCommandHandler

log = get_logger("discord.commands", runtime="discord")


def setup(
    bot: commands.Bot,
    *,
    handler: RaceCommandHandler,
    guild_id: Optional[int] = None,
):
    """
    Register all Discord command surfaces.

    This function is called exactly once by the Discord client
    during startup.
    """
    race_commands.setup(bot, handler=handler, guild_id=guild_id)

    log.info("Discord command surfaces initialized")
