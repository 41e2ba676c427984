from __future__ import annotations

import logging
from typing import Optional

import discord

from ..constants import (
    COLORS,
    MAX_EMBED_DESCRIPTION,
    NO_CONTENT_PLACEHOLDER,
    SOURCE_FIELD_NAME,
    STARS_FIELD_NAME,
)
from ..observability import ActionType, ObservabilityManager
from ..utils import AnyEmoji, reaction_key, same_reaction
from .starboard_store import StarboardEntry, StarboardEntryExists, StarboardStore

log = logging.getLogger("cabinet.starboard")


def attachment_placeholder(message: discord.Message) -> str:
    """Description used when the source message has no text."""
    for attachment in message.attachments:
        content_type = attachment.content_type or ""
        if content_type.startswith("image/"):
            return "[image]"
        if content_type.startswith("video/"):
            return "[video]"
    if message.attachments:
        return "[attachment]"
    return NO_CONTENT_PLACEHOLDER


class StarboardReconciler:
    """Keeps starboard entries and their cross-posts in line with live star counts.

    Every transition starts by recounting the distinct non-bot users behind
    the star reaction, so out-of-order or duplicated events converge on the
    same state. A message is listed once it reaches ``min_stars`` and
    unlisted (row and cross-post deleted) once it drops below it.
    """

    def __init__(
        self,
        store: StarboardStore,
        *,
        channel_name: str = "starboard",
        emoji: str = "⭐",
        min_stars: int = 2,
        observability: Optional[ObservabilityManager] = None,
    ) -> None:
        self.store = store
        self.channel_name = channel_name
        self.emoji = emoji
        self.min_stars = max(1, int(min_stars))
        self.observability = observability or ObservabilityManager()

    def is_star(self, emoji: AnyEmoji) -> bool:
        return same_reaction(reaction_key(emoji), self.emoji)

    def format_stars(self, stars: int) -> str:
        return f"{stars} {self.emoji}"

    def find_starboard_channel(self, guild: discord.Guild) -> Optional[discord.TextChannel]:
        return discord.utils.get(guild.text_channels, name=self.channel_name)

    async def count_stars(self, message: discord.Message) -> int:
        """Distinct non-bot users currently reacting with the star emoji."""
        for reaction in message.reactions:
            if not self.is_star(reaction.emoji):
                continue
            user_ids = {user.id async for user in reaction.users() if not user.bot}
            return len(user_ids)
        return 0

    def build_embed(self, message: discord.Message, stars: int) -> discord.Embed:
        description = message.content or attachment_placeholder(message)
        if len(description) > MAX_EMBED_DESCRIPTION:
            description = description[:MAX_EMBED_DESCRIPTION - 1] + "…"

        embed = discord.Embed(description=description, color=COLORS["star"], timestamp=message.created_at)
        embed.set_author(name=str(message.author), icon_url=message.author.display_avatar.url)
        embed.add_field(name=STARS_FIELD_NAME, value=self.format_stars(stars), inline=True)
        embed.add_field(name=SOURCE_FIELD_NAME, value=f"[Jump to message]({message.jump_url})", inline=True)

        for attachment in message.attachments:
            if attachment.content_type and attachment.content_type.startswith("image/"):
                embed.set_image(url=attachment.url)
                break
        return embed

    def _target_channel(self, message: discord.Message) -> Optional[discord.TextChannel]:
        if message.guild is None:
            return None
        channel = self.find_starboard_channel(message.guild)
        if channel is None:
            log.debug("No #%s channel in guild %s", self.channel_name, message.guild.id)
            return None
        if message.channel.id == channel.id:
            return None
        return channel

    async def handle_add(self, message: discord.Message) -> Optional[StarboardEntry]:
        """Apply a star-add event. Returns the entry, or None while unlisted."""
        channel = self._target_channel(message)
        if channel is None:
            return None

        stars = await self.count_stars(message)
        entry = await self.store.get(message.id)

        if entry is None:
            if stars < self.min_stars:
                return None
            return await self._create(channel, message, stars)

        if stars < self.min_stars:
            # Adds cannot lower the count; a stale event, leave the entry alone.
            return entry
        return await self._update(channel, message, entry, stars)

    async def handle_remove(self, message: discord.Message) -> Optional[StarboardEntry]:
        """Apply a star-remove event. Returns the entry, or None once unlisted."""
        channel = self._target_channel(message)
        if channel is None:
            return None

        stars = await self.count_stars(message)
        entry = await self.store.get(message.id)
        if entry is None:
            return None

        if stars < self.min_stars:
            await self.store.delete(message.id)
            await self._delete_crosspost(channel, entry)
            self.observability.log_starboard(ActionType.STARBOARD_REMOVE, channel.guild.id, message.id, stars)
            return None

        return await self._update(channel, message, entry, stars)

    async def _create(
        self,
        channel: discord.TextChannel,
        message: discord.Message,
        stars: int,
    ) -> Optional[StarboardEntry]:
        try:
            entry = await self.store.create(
                source_message_id=message.id,
                guild_id=channel.guild.id,
                channel_id=message.channel.id,
                star_count=stars,
            )
        except StarboardEntryExists:
            log.debug("Entry for %s created concurrently, updating instead", message.id)
            entry = await self.store.get(message.id)
            if entry is None:
                return None
            return await self._update(channel, message, entry, stars)

        try:
            crosspost = await channel.send(embed=self.build_embed(message, stars))
        except discord.HTTPException:
            # A row without a cross-post is never re-sent by later events.
            await self.store.delete(message.id)
            raise

        entry.starboard_message_id = crosspost.id
        if not await self.store.set_starboard_message(message.id, crosspost.id):
            log.info("Entry for %s was removed while posting, deleting cross-post %s", message.id, crosspost.id)
            await self._delete_crosspost(channel, entry)
            return None
        self.observability.log_starboard(ActionType.STARBOARD_POST, channel.guild.id, message.id, stars)

        # Concurrent events may have moved the count while the cross-post was in flight.
        latest = await self.store.get(message.id)
        if latest is not None and latest.star_count != stars:
            return await self._update(channel, message, latest, latest.star_count)
        return entry

    async def _update(
        self,
        channel: discord.TextChannel,
        message: discord.Message,
        entry: StarboardEntry,
        stars: int,
    ) -> StarboardEntry:
        await self.store.update_count(message.id, stars)
        entry.star_count = stars

        if entry.starboard_message_id is None:
            # The creating handler has not stored its cross-post yet and will reconcile the count.
            return entry

        crosspost = await self._fetch_crosspost(channel, entry)
        if crosspost is None:
            sent = await channel.send(embed=self.build_embed(message, stars))
            await self.store.set_starboard_message(message.id, sent.id)
            entry.starboard_message_id = sent.id
        else:
            embed = crosspost.embeds[0] if crosspost.embeds else None
            if embed is not None and embed.fields:
                field = embed.fields[0]
                embed.set_field_at(0, name=field.name, value=self.format_stars(stars), inline=bool(field.inline))
            else:
                embed = self.build_embed(message, stars)
            await crosspost.edit(embed=embed)

        self.observability.log_starboard(ActionType.STARBOARD_UPDATE, channel.guild.id, message.id, stars)
        return entry

    async def _fetch_crosspost(
        self,
        channel: discord.TextChannel,
        entry: StarboardEntry,
    ) -> Optional[discord.Message]:
        if entry.starboard_message_id is None:
            return None
        try:
            return await channel.fetch_message(entry.starboard_message_id)
        except discord.NotFound:
            log.info("Cross-post %s for %s is gone", entry.starboard_message_id, entry.source_message_id)
            return None

    async def _delete_crosspost(self, channel: discord.TextChannel, entry: StarboardEntry) -> None:
        if entry.starboard_message_id is None:
            return
        try:
            await channel.get_partial_message(entry.starboard_message_id).delete()
        except discord.HTTPException as e:
            log.warning("Could not delete cross-post %s: %s", entry.starboard_message_id, e)
