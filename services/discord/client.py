"""
Discord Client (Producer Adapter Runtime)

This module owns the Discord connection itself.

Responsibilities:
- connect to Discord
- handle ready / resume / disconnect events
- register the race command surface and sync it
- expose a clean async run() / shutdown() contract

IMPORTANT:
- This client MUST be controlled by DiscordSupervisor
- This client MUST NOT create its own event loop
"""

from __future__ import annotations

import os
import asyncio
from typing import Optional

import discord
from discord.ext import commands

from dotenv import load_dotenv

from shared.logging.logger import get_logger

from services.discord.logging import DiscordLogAdapter
from services.discord import commands as command_surfaces
from services.discord.commands.race import RaceCommandHandler

# NOTE: routed to Discord runtime log file
log = get_logger("discord.client", runtime="discord")


class DiscordClient:
    """
    Thin wrapper around discord.py Bot.
    """

    def __init__(
        self,
        *,
        handler: RaceCommandHandler,
        logger: DiscordLogAdapter,
        token_env: str = "DISCORD_BOT_TOKEN",
        sync_guild_id: Optional[int] = None,
        supervisor=None,
    ):
        load_dotenv()

        token = os.getenv(token_env)
        if not token:
            raise RuntimeError(f"{token_env} not found in environment")

        log.info(f"Discord bot token present: {bool(token)}")

        self._token: str = token
        self._handler = handler
        self._sync_guild_id = sync_guild_id
        self._bot: Optional[commands.Bot] = None
        self._ready_event = asyncio.Event()
        self._supervisor = supervisor

        self.logger = logger

    # --------------------------------------------------

    def _build_bot(self) -> commands.Bot:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = False
        intents.message_content = False  # slash-command only

        bot = commands.Bot(
            command_prefix="!",
            intents=intents,
        )

        command_surfaces.setup(
            bot,
            handler=self._handler,
            guild_id=self._sync_guild_id,
        )

        # --------------------------------------------------
        # Lifecycle Events
        # --------------------------------------------------

        @bot.event
        async def on_ready():
            log.info(
                f"Discord connected as {bot.user} "
                f"(id={bot.user.id}) "
                f"guilds={len(bot.guilds)}"
            )
            self.logger.log_startup()

            try:
                if self._sync_guild_id:
                    synced = await bot.tree.sync(guild=discord.Object(id=self._sync_guild_id))
                else:
                    synced = await bot.tree.sync()
                log.info(f"Discord command tree synced ({len(synced)} commands)")
            except discord.HTTPException as e:
                log.error(f"Failed to sync Discord commands: {e}")

            if self._supervisor:
                self._supervisor.notify_connected()

            self._ready_event.set()

        @bot.event
        async def on_resumed():
            log.info("Discord connection resumed")
            if self._supervisor:
                self._supervisor.notify_connected()

        @bot.event
        async def on_disconnect():
            log.warning("Discord connection lost")
            if self._supervisor:
                self._supervisor.notify_disconnected()

        @bot.event
        async def on_guild_join(guild: discord.Guild):
            log.info(f"Joined guild: {guild.name} (id={guild.id})")

        return bot

    # --------------------------------------------------

    async def run(self):
        """
        Start the Discord client and block until shutdown.
        """
        if self._bot is not None:
            raise RuntimeError("Discord client already running")

        log.info("Initializing Discord client")

        self._bot = self._build_bot()

        try:
            await self._bot.start(self._token)
        except asyncio.CancelledError:
            log.info("Discord client task cancelled")
            raise
        except Exception as e:
            log.error(f"Discord client crashed: {e}")
            raise
        finally:
            log.info("Discord client stopped")

    # --------------------------------------------------

    async def shutdown(self):
        """
        Gracefully close the Discord connection.
        """
        if not self._bot:
            return

        log.info("Closing Discord connection")

        try:
            await self._bot.close()
        except Exception as e:
            log.warning(f"Discord close error ignored: {e}")

        self.logger.log_shutdown()
        self._bot = None
        self._ready_event.clear()

    # --------------------------------------------------

    @property
    def ready(self) -> asyncio.Event:
        return self._ready_event

    @property
    def bot(self) -> Optional[commands.Bot]:
        return self._bot
