from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from .constants import ERROR_MESSAGES
from .utils import error_embed, safe_response

log = logging.getLogger("cabinet.error_handlers")


class ErrorHandler(commands.Cog):
    """Centralized slash command error handling."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self._previous_handler = bot.tree.on_error
        bot.tree.on_error = self.on_app_command_error

    async def cog_unload(self) -> None:
        self.bot.tree.on_error = self._previous_handler

    async def on_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        if isinstance(error, app_commands.MissingPermissions):
            await safe_response(interaction, embed=error_embed(ERROR_MESSAGES["missing_permissions"]), ephemeral=True)
            return

        if isinstance(error, app_commands.NoPrivateMessage):
            await safe_response(interaction, embed=error_embed("This command can only be used in a server."), ephemeral=True)
            return

        if isinstance(error, app_commands.BotMissingPermissions):
            await safe_response(
                interaction,
                embed=error_embed("The bot lacks required permissions to run this command."),
                ephemeral=True,
            )
            return

        log.exception("Unexpected error in app command %s", interaction.command.name if interaction.command else "?", exc_info=error)
        await safe_response(interaction, embed=error_embed(ERROR_MESSAGES["generic"]), ephemeral=True)


async def setup_error_handlers(bot: commands.Bot) -> None:
    """Setup error handlers for the bot."""
    await bot.add_cog(ErrorHandler(bot))
