from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from ..services.reaction_roles import ReactionRoleManager
from ..utils import error_embed, info_embed, reaction_key, success_embed

log = logging.getLogger("cabinet.cogs.reaction_roles")


def parse_snowflake(raw: str) -> int | None:
    raw = raw.strip()
    if not raw.isdigit():
        return None
    return int(raw)


@app_commands.default_permissions(manage_roles=True)
@app_commands.guild_only()
class ReactionRolesCog(commands.GroupCog, group_name="reactionrole", group_description="Manage reaction roles"):
    """In-Discord administration of reaction role bindings."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self.manager: ReactionRoleManager = bot.reaction_roles  # type: ignore[attr-defined]
        super().__init__()

    @app_commands.command(name="add", description="Grant a role when members react to a message")
    @app_commands.describe(message_id="ID of the message to watch", role="Role to grant", emoji="Emoji to react with")
    async def add(self, interaction: discord.Interaction, message_id: str, role: discord.Role, emoji: str) -> None:
        parsed = parse_snowflake(message_id)
        if parsed is None:
            await interaction.response.send_message(embed=error_embed("That is not a valid message ID."), ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)
        key = reaction_key(discord.PartialEmoji.from_str(emoji.strip()))
        previous = await self.manager.store.find(parsed, key)
        binding = await self.manager.add_binding(parsed, role.id, key)
        log.info("Binding %s created by %s", binding.id, interaction.user.id)

        text = f"Reacting with {key} on `{parsed}` now grants {role.mention}."
        if previous is not None and previous.role_id != role.id:
            text += f" It replaces <@&{previous.role_id}>."
        await interaction.followup.send(embed=success_embed(text), ephemeral=True)

    @app_commands.command(name="remove", description="Stop granting a role from a message")
    @app_commands.describe(message_id="ID of the watched message", role="Role to stop granting")
    async def remove(self, interaction: discord.Interaction, message_id: str, role: discord.Role) -> None:
        parsed = parse_snowflake(message_id)
        if parsed is None:
            await interaction.response.send_message(embed=error_embed("That is not a valid message ID."), ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)
        removed = await self.manager.remove_binding(parsed, role.id)
        if removed:
            await interaction.followup.send(embed=success_embed(f"Removed {removed} binding(s) for {role.mention}."), ephemeral=True)
        else:
            await interaction.followup.send(embed=error_embed("No matching reaction role found."), ephemeral=True)

    @app_commands.command(name="list", description="List configured reaction roles")
    async def list_bindings(self, interaction: discord.Interaction) -> None:
        guild = interaction.guild
        if guild is None:
            await interaction.response.send_message(embed=error_embed("This command can only be used in a server."), ephemeral=True)
            return
        lines = [
            f"`{b.id}` {b.reaction} on `{b.message_id}` → <@&{b.role_id}>"
            for b in self.manager.bindings
            if guild.get_role(b.role_id) is not None
        ]
        if not lines:
            await interaction.response.send_message(embed=info_embed("No reaction roles configured yet."), ephemeral=True)
            return
        await interaction.response.send_message(embed=info_embed("\n".join(lines[:40])), ephemeral=True)
