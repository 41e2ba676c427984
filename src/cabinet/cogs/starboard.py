from __future__ import annotations

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from ..services.starboard import StarboardReconciler
from ..services.starboard_store import StarboardEntry

log = logging.getLogger("cabinet.cogs.starboard")


def entry_embed(entry: StarboardEntry, emoji: str) -> discord.Embed:
    embed = discord.Embed(description=f"Stars: {entry.star_count} {emoji}")
    embed.set_author(name=str(entry.source_message_id))
    embed.add_field(name="Jump to Message", value=f"[Click Here]({entry.jump_url})", inline=True)
    return embed


class StarboardCog(commands.Cog):
    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self.reconciler: StarboardReconciler = bot.starboard  # type: ignore[attr-defined]

    async def _resolve_message(self, payload: discord.RawReactionActionEvent) -> Optional[discord.Message]:
        """Turn a raw reaction payload into a fully fetched message."""
        if payload.guild_id is None:
            return None
        guild = self.bot.get_guild(payload.guild_id)
        if guild is None:
            return None
        channel = guild.get_channel_or_thread(payload.channel_id)
        if not isinstance(channel, (discord.TextChannel, discord.Thread)):
            return None
        try:
            return await channel.fetch_message(payload.message_id)
        except (discord.NotFound, discord.Forbidden):
            log.debug("Message %s not reachable in %s", payload.message_id, payload.channel_id)
            return None

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        if not self.reconciler.is_star(payload.emoji):
            return
        message = await self._resolve_message(payload)
        if message is not None:
            await self.reconciler.handle_add(message)

    @commands.Cog.listener()
    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        if not self.reconciler.is_star(payload.emoji):
            return
        message = await self._resolve_message(payload)
        if message is not None:
            await self.reconciler.handle_remove(message)

    @app_commands.command(name="starboard", description="View the starboard")
    @app_commands.guild_only()
    async def starboard(self, interaction: discord.Interaction) -> None:
        limit = self.bot.settings.starboard_top_limit  # type: ignore[attr-defined]
        entries = await self.reconciler.store.top(interaction.guild_id, limit)
        if not entries:
            await interaction.response.send_message("No messages on the starboard yet.")
            return
        embeds = [entry_embed(entry, self.reconciler.emoji) for entry in entries]
        await interaction.response.send_message(embeds=embeds)
