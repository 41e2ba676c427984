from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Optional

import discord
from discord.ext import commands

from ..observability import ActionType, LogLevel, ObservabilityManager
from ..utils import reaction_key, same_reaction, to_partial_emoji
from .reaction_roles_store import ReactionRoleBinding, ReactionRolesStore

log = logging.getLogger("cabinet.reaction_roles")

ADD_EVENT = "on_raw_reaction_add"
REMOVE_EVENT = "on_raw_reaction_remove"


class ReactionRoleManager:
    """Owns the reaction role listeners and the in-memory binding index.

    ``start`` attaches the gateway listeners once, ``reload`` re-reads every
    binding and backfills missing reactions, ``stop`` detaches the listeners.
    """

    def __init__(
        self,
        bot: commands.Bot,
        store: ReactionRolesStore,
        *,
        delay_seconds: float = 1.0,
        observability: Optional[ObservabilityManager] = None,
    ) -> None:
        self.bot = bot
        self.store = store
        self.delay_seconds = delay_seconds
        self.observability = observability or ObservabilityManager()
        self._index: dict[tuple[int, str], int] = {}
        self._bindings: list[ReactionRoleBinding] = []
        self._listeners: list[tuple[str, object]] = []
        self._lock = asyncio.Lock()

    @property
    def attached(self) -> bool:
        return bool(self._listeners)

    @property
    def bindings(self) -> list[ReactionRoleBinding]:
        return list(self._bindings)

    async def start(self) -> None:
        if not self.attached:
            self._attach()
        await self.reload()

    async def stop(self) -> None:
        for event, listener in self._listeners:
            self.bot.remove_listener(listener, event)
        self._listeners.clear()
        log.info("Reaction role listeners detached")

    def _attach(self) -> None:
        self.bot.add_listener(self._on_raw_reaction_add, ADD_EVENT)
        self.bot.add_listener(self._on_raw_reaction_remove, REMOVE_EVENT)
        self._listeners = [
            (ADD_EVENT, self._on_raw_reaction_add),
            (REMOVE_EVENT, self._on_raw_reaction_remove),
        ]
        log.info("Reaction role listeners attached")

    async def reload(self) -> int:
        """Re-read all bindings and backfill reactions. Returns reactions added."""
        async with self._lock:
            bindings = await self.store.list_all()
            self._bindings = bindings
            # Rows come back ordered by id, so the newest duplicate wins.
            self._index = {(b.message_id, b.reaction): b.role_id for b in bindings}
            log.info("Loaded %d reaction role bindings", len(bindings))
            if not bindings:
                return 0
            return await self.backfill(bindings)

    def role_for(self, message_id: int, emoji: discord.PartialEmoji | discord.Emoji | str) -> Optional[int]:
        key = reaction_key(emoji)
        role_id = self._index.get((message_id, key))
        if role_id is not None:
            return role_id
        # Bindings may have been saved without the animated flag (or with it).
        for (bound_message_id, bound_key), bound_role_id in self._index.items():
            if bound_message_id == message_id and same_reaction(bound_key, key):
                return bound_role_id
        return None

    async def find_message(self, message_id: int) -> Optional[discord.Message]:
        """Look for a message in every text channel the bot can see.

        This is a linear scan and only suits a handful of bound messages.
        """
        for guild in self.bot.guilds:
            for channel in guild.text_channels:
                try:
                    message = await channel.fetch_message(message_id)
                except (discord.NotFound, discord.Forbidden):
                    continue
                except discord.HTTPException as e:
                    log.debug("Skipping #%s while looking for %s: %s", channel.name, message_id, e)
                    continue
                log.info("Found message %s in #%s (%s)", message_id, channel.name, channel.id)
                return message
        log.warning("Could not find message %s in any channel", message_id)
        return None

    async def backfill(self, bindings: list[ReactionRoleBinding]) -> int:
        """Add each bound reaction that is missing from its message."""
        by_message: dict[int, list[ReactionRoleBinding]] = defaultdict(list)
        for binding in bindings:
            by_message[binding.message_id].append(binding)

        added = 0
        for message_id, message_bindings in by_message.items():
            message = await self.find_message(message_id)
            if message is None:
                continue

            present = [reaction_key(r.emoji) for r in message.reactions]
            for binding in message_bindings:
                if any(same_reaction(existing, binding.reaction) for existing in present):
                    continue
                try:
                    await message.add_reaction(to_partial_emoji(binding.reaction))
                except discord.HTTPException as e:
                    log.error("Failed to add reaction %s to message %s: %s", binding.reaction, message_id, e)
                    continue
                present.append(binding.reaction)
                added += 1
                self.observability.log_structured(
                    LogLevel.INFO,
                    ActionType.BACKFILL,
                    f"Added missing reaction {binding.reaction} to message {message_id}",
                    guild_id=message.guild.id if message.guild else None,
                    details={"message_id": message_id, "reaction": binding.reaction},
                    success=True,
                )
                await asyncio.sleep(self.delay_seconds)
        return added

    async def add_binding(self, message_id: int, role_id: int, reaction: str) -> ReactionRoleBinding:
        binding = await self.store.create(message_id, role_id, reaction)
        await self.reload()
        return binding

    async def remove_binding(self, message_id: int, role_id: int) -> int:
        removed = await self.store.delete_for_message_role(message_id, role_id)
        if removed:
            await self.reload()
        else:
            log.info("No reaction role found for message=%s role=%s", message_id, role_id)
        return removed

    async def delete_binding(self, binding_id: int) -> bool:
        deleted = await self.store.delete(binding_id)
        if deleted:
            await self.reload()
        return deleted

    async def _resolve_member(self, guild: discord.Guild, user_id: int) -> Optional[discord.Member]:
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.HTTPException:
            return None

    async def _on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        await self.on_reaction_add(payload)

    async def _on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        await self.on_reaction_remove(payload)

    async def on_reaction_add(self, payload: discord.RawReactionActionEvent) -> bool:
        return await self._toggle(payload, grant=True)

    async def on_reaction_remove(self, payload: discord.RawReactionActionEvent) -> bool:
        return await self._toggle(payload, grant=False)

    async def _toggle(self, payload: discord.RawReactionActionEvent, *, grant: bool) -> bool:
        """Grant or revoke the bound role. Returns True when the member changed."""
        if payload.guild_id is None:
            return False
        if self.bot.user is not None and payload.user_id == self.bot.user.id:
            return False

        role_id = self.role_for(payload.message_id, payload.emoji)
        if role_id is None:
            return False

        guild = self.bot.get_guild(payload.guild_id)
        if guild is None:
            return False

        try:
            member = await self._resolve_member(guild, payload.user_id)
            if member is None or member.bot:
                return False

            role = guild.get_role(role_id)
            if role is None:
                log.warning("Bound role %s no longer exists in guild %s", role_id, guild.id)
                return False

            has_role = any(r.id == role.id for r in member.roles)
            if grant and not has_role:
                await member.add_roles(role, reason="Reaction role")
            elif not grant and has_role:
                await member.remove_roles(role, reason="Reaction role")
            else:
                return False
        except discord.HTTPException as e:
            self.observability.log_error(
                f"Failed to {'add' if grant else 'remove'} reaction role",
                e,
                guild_id=payload.guild_id,
                role_id=role_id,
                user_id=payload.user_id,
            )
            return False

        self.observability.log_role_change(
            granted=grant,
            guild_id=guild.id,
            user_id=member.id,
            role_id=role.id,
            message_id=payload.message_id,
            reaction=reaction_key(payload.emoji),
        )
        return True
