from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

GAME_RESPONSES: dict[str, dict[str, str]] = {
    "chuni": {
        "oldest": "Chunithm oldest supported version: Chunithm NEW!! (2.00)",
        "newest": "Chunithm newest supported version: Chunithm VERSE (2.30)",
        "faq": "Chunithm FAQ: https://two-torial.xyz/games/chunithmluminousplus/troubleshooting/",
        "default": "Unknown option selected for Chunithm.",
    },
    "mai2": {
        "oldest": "maimai oldest supported version: maimai DX (1.00)",
        "newest": "maimai newest supported version: maimai DX Prism Plus (1.55)",
        "faq": "maimai FAQ https://two-torial.xyz/games/sega/maimaidx/prismplus/troubleshooting/",
        "default": "Unknown option selected for maimai.",
    },
    "mu3": {
        "oldest": "Ongeki oldest supported version: O.N.G.E.K.I. (1.00)",
        "newest": "Ongeki newest supported version: O.N.G.E.K.I. ReFresh (1.50)",
        "faq": "Ongeki FAQ: https://two-torial.xyz/games/ongekibrightmemory/troubleshooting/",
        "default": "Unknown option selected for Ongeki.",
    },
}

UNKNOWN_GAME = "Unknown game selected."

OPTION_CHOICES = [
    app_commands.Choice(name="Oldest supported version", value="oldest"),
    app_commands.Choice(name="Newest supported version", value="newest"),
    app_commands.Choice(name="FAQ", value="faq"),
]


def game_response(game: str, option: Optional[str]) -> str:
    responses = GAME_RESPONSES.get(game)
    if responses is None:
        return UNKNOWN_GAME
    if option and option in responses:
        return responses[option]
    return responses["default"]


class GamesCog(commands.GroupCog, group_name="games", group_description="Supported game versions and FAQs"):
    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        super().__init__()

    async def _reply(self, interaction: discord.Interaction, game: str, option: Optional[str]) -> None:
        await interaction.response.send_message(game_response(game, option))

    @app_commands.command(name="chuni", description="Chunithm information")
    @app_commands.choices(option=OPTION_CHOICES)
    async def chuni(self, interaction: discord.Interaction, option: str) -> None:
        await self._reply(interaction, "chuni", option)

    @app_commands.command(name="mai2", description="maimai DX information")
    @app_commands.choices(option=OPTION_CHOICES)
    async def mai2(self, interaction: discord.Interaction, option: str) -> None:
        await self._reply(interaction, "mai2", option)

    @app_commands.command(name="mu3", description="O.N.G.E.K.I. information")
    @app_commands.choices(option=OPTION_CHOICES)
    async def mu3(self, interaction: discord.Interaction, option: str) -> None:
        await self._reply(interaction, "mu3", option)
