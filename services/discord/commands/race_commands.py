"""
Discord Race Slash Command Registration (Producer Adapter)

Thin registration layer that exposes the race slash commands to Discord and
delegates ALL logic to RaceCommandHandler.

Responsibilities:
- Register race slash commands
- Extract invoking user and channel name from the interaction
- Perform Discord I/O (responses) ONLY at the boundary

IMPORTANT DESIGN RULES:
- NO business logic
- NO race state access outside the handler
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import discord
from discord import app_commands
from discord.ext import commands

from shared.logging.logger import get_logger

from services.discord.commands.race import RaceCommandHandler

# NOTE: routed to Discord runtime log file
log = get_logger("discord.commands.race.register", runtime="discord")

ERROR_REPLY = "An error occurred while processing your command."


def _context(interaction: discord.Interaction) -> Dict[str, Any]:
    channel = interaction.channel
    return {
        "user": str(interaction.user) if interaction.user else None,
        "channel": getattr(channel, "name", None),
        "user_id": interaction.user.id if interaction.user else None,
        "guild_id": interaction.guild.id if interaction.guild else None,
    }


async def _reply(interaction: discord.Interaction, result: Dict[str, Any]) -> None:
    await interaction.response.send_message(content=result["message"])


async def _reply_error(interaction: discord.Interaction, e: Exception) -> None:
    log.error(f"Race command failed: {e}")
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content=ERROR_REPLY)
        else:
            await interaction.response.send_message(content=ERROR_REPLY)
    except discord.HTTPException as send_error:
        log.warning(f"Failed to send error reply: {send_error}")


# ==================================================
# Registration Entry Point
# ==================================================

def setup(
    bot: commands.Bot,
    *,
    handler: RaceCommandHandler,
    guild_id: Optional[int] = None,
):
    """
    Register all race slash commands.

    With guild_id the commands are scoped to that guild, which makes
    command sync immediate during development.
    """

    # --------------------------------------------------
    # /create-team
    # --------------------------------------------------

    @app_commands.command(
        name="create-team",
        description="Create a new team at position 1",
    )
    @app_commands.describe(teamname="The name of the team")
    async def create_team(interaction: discord.Interaction, teamname: str):
        try:
            result = await handler.cmd_create_team(
                team_name=teamname, **_context(interaction)
            )
        except Exception as e:
            await _reply_error(interaction, e)
            raise
        await _reply(interaction, result)

    # --------------------------------------------------
    # /roll
    # --------------------------------------------------

    @app_commands.command(
        name="roll",
        description="Roll a 6-sided die for this channel's team",
    )
    async def roll(interaction: discord.Interaction):
        try:
            result = await handler.cmd_roll(**_context(interaction))
        except Exception as e:
            await _reply_error(interaction, e)
            raise
        await _reply(interaction, result)

    # --------------------------------------------------
    # /edit-team
    # --------------------------------------------------

    @app_commands.command(
        name="edit-team",
        description="Manually set a team's position",
    )
    @app_commands.describe(
        teamname="The name of the team",
        position="The position to set (1-100)",
    )
    async def edit_team(
        interaction: discord.Interaction,
        teamname: str,
        position: int,
    ):
        try:
            result = await handler.cmd_edit_team(
                team_name=teamname, position=position, **_context(interaction)
            )
        except Exception as e:
            await _reply_error(interaction, e)
            raise
        await _reply(interaction, result)

    # --------------------------------------------------
    # /edit-team-name
    # --------------------------------------------------

    @app_commands.command(
        name="edit-team-name",
        description="Rename a team",
    )
    @app_commands.describe(
        teamname="The name of the team",
        newteamname="The new name of the team",
        position="The position to set (1-100)",
    )
    async def edit_team_name(
        interaction: discord.Interaction,
        teamname: str,
        newteamname: str,
        position: int,
    ):
        try:
            result = await handler.cmd_edit_team_name(
                team_name=teamname,
                new_team_name=newteamname,
                position=position,
                **_context(interaction),
            )
        except Exception as e:
            await _reply_error(interaction, e)
            raise
        await _reply(interaction, result)

    # --------------------------------------------------
    # /delete-team
    # --------------------------------------------------

    @app_commands.command(
        name="delete-team",
        description="Delete a team from the race",
    )
    @app_commands.describe(teamname="The name of the team")
    async def delete_team(interaction: discord.Interaction, teamname: str):
        try:
            result = await handler.cmd_delete_team(
                team_name=teamname, **_context(interaction)
            )
        except Exception as e:
            await _reply_error(interaction, e)
            raise
        await _reply(interaction, result)

    # --------------------------------------------------
    # /logs
    # --------------------------------------------------

    @app_commands.command(
        name="logs",
        description="View the roll logs for all teams",
    )
    async def logs(interaction: discord.Interaction):
        ctx = _context(interaction)
        try:
            result = await handler.cmd_logs(
                user_id=ctx["user_id"], guild_id=ctx["guild_id"]
            )
        except Exception as e:
            await _reply_error(interaction, e)
            raise
        await _reply(interaction, result)

    # --------------------------------------------------
    # Register Commands
    # --------------------------------------------------

    guild = discord.Object(id=guild_id) if guild_id else None
    for command in (create_team, roll, edit_team, edit_team_name, delete_team, logs):
        bot.tree.add_command(command, guild=guild)

    log.info(
        "Discord race slash commands registered"
        + (f" for guild {guild_id}" if guild_id else " globally")
    )
