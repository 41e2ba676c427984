from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

from .config import Settings
from .database import initialize_database
from .error_handlers import setup_error_handlers
from .observability import ObservabilityManager
from .services.reaction_roles import ReactionRoleManager
from .services.reaction_roles_store import ReactionRolesStore
from .services.starboard import StarboardReconciler
from .services.starboard_store import StarboardStore

log = logging.getLogger("cabinet.bot")


class _CommandSyncManager:
    def __init__(self, bot: "CabinetBot") -> None:
        self.bot = bot
        self._lock = asyncio.Lock()

    async def sync_startup(self) -> None:
        if self.bot.settings.sync_guild_id:
            await self.sync_guild(self.bot.settings.sync_guild_id)
        else:
            await self.sync_global()

    async def sync_global(self) -> None:
        async with self._lock:
            await self.bot.tree.sync()
            log.info("Commands synced globally")
            self._log_tree()

    async def sync_guild(self, guild_id: int) -> None:
        async with self._lock:
            guild = discord.Object(id=guild_id)
            self.bot.tree.copy_global_to(guild=guild)
            await self.bot.tree.sync(guild=guild)
            log.info("Commands synced to guild %d", guild_id)
            self._log_tree()

    def _log_tree(self) -> None:
        cmds = self.bot.tree.get_commands()
        log.info("Tree commands loaded: %d", len(cmds))
        for c in cmds:
            log.info(" - /%s", c.name)


class CabinetBot(commands.Bot):
    def __init__(self, settings: Settings) -> None:
        intents = discord.Intents.default()
        intents.members = True
        intents.reactions = True
        # Starboard embeds mirror the source text.
        intents.message_content = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=False, users=True),
            help_command=None,
        )

        self.settings = settings
        self.observability = ObservabilityManager()

        self.starboard_store = StarboardStore(settings.sqlite_path)
        self.rr_store = ReactionRolesStore(settings.sqlite_path)

        self.starboard = StarboardReconciler(
            self.starboard_store,
            channel_name=settings.starboard_channel_name,
            emoji=settings.starboard_emoji,
            min_stars=settings.starboard_min_stars,
            observability=self.observability,
        )
        self.reaction_roles = ReactionRoleManager(
            self,
            self.rr_store,
            delay_seconds=settings.backfill_delay_seconds,
            observability=self.observability,
        )
        self._sync_mgr = _CommandSyncManager(self)

    async def setup_hook(self) -> None:
        try:
            await initialize_database(self.settings.sqlite_path, [self.starboard_store, self.rr_store])
        except Exception:
            self.observability.log_startup_event("database", "FAILED")
            raise
        self.observability.log_startup_event("database", "OK")

        await setup_error_handlers(self)

        loaded: list[str] = []
        failed: list[str] = []

        # One bad cog must not prevent the others from registering commands.
        async def _load_cog(import_path: str, class_name: str) -> None:
            try:
                mod = __import__(import_path, fromlist=[class_name])
                cls = getattr(mod, class_name)
                await self.add_cog(cls(self))
                log.info("Loaded cog: %s.%s", import_path, class_name)
                loaded.append(f"{import_path}.{class_name}")
            except Exception as e:
                log.exception("Failed to load cog: %s.%s", import_path, class_name)
                failed.append(f"{import_path}.{class_name} ({type(e).__name__})")

        await _load_cog("cabinet.cogs.starboard", "StarboardCog")
        await _load_cog("cabinet.cogs.reaction_roles", "ReactionRolesCog")
        await _load_cog("cabinet.cogs.games", "GamesCog")

        log.info("Startup cog load summary: loaded=%d failed=%d", len(loaded), len(failed))
        for name in failed:
            log.warning("Startup cog failed: %s", name)

        try:
            await self._sync_mgr.sync_startup()
        except discord.HTTPException:
            self.observability.log_startup_event("command_sync_done", "FAILED")
            log.exception("Command sync failed")
        else:
            self.observability.log_startup_event("command_sync_done", "OK")

    async def on_ready(self) -> None:
        log.info("Logged in as %s (%s) in %d guild(s)", self.user, self.user.id if self.user else "?", len(self.guilds))
        # on_ready fires again after reconnects; start() never stacks listeners.
        try:
            await self.reaction_roles.start()
        except Exception:
            self.observability.log_startup_event("reaction_roles", "FAILED")
            log.exception("Reaction role manager failed to start")
            return
        self.observability.log_startup_event("reaction_roles", "OK")

    async def close(self) -> None:
        try:
            await self.reaction_roles.stop()
        finally:
            await super().close()
