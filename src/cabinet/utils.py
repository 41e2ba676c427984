from __future__ import annotations

import logging
from typing import Any, Union

import discord

from .constants import COLORS, MAX_EMBED_DESCRIPTION, MAX_EMBED_TITLE

log = logging.getLogger("cabinet.utils")

AnyEmoji = Union[discord.Emoji, discord.PartialEmoji, str]


def reaction_key(emoji: AnyEmoji) -> str:
    """Normalize an emoji into the token stored on reaction role bindings.

    Unicode emoji are stored as-is, custom emoji as ``<name:id>`` or
    ``<a:name:id>`` when animated.
    """
    if isinstance(emoji, str):
        return emoji
    if emoji.id is None:
        return emoji.name or ""
    prefix = "a" if emoji.animated else ""
    return f"<{prefix}:{emoji.name}:{emoji.id}>"


def same_reaction(a: str, b: str) -> bool:
    """Compare two reaction keys, ignoring the animated flag of custom emoji."""
    def _static(key: str) -> str:
        return "<:" + key[3:] if key.startswith("<a:") else key

    return _static(a) == _static(b)


def to_partial_emoji(key: str) -> discord.PartialEmoji:
    """Convert a stored reaction key into something ``add_reaction`` accepts."""
    return discord.PartialEmoji.from_str(key)


def safe_embed(title: str, description: str, color: int = COLORS["default"]) -> discord.Embed:
    """Create an embed with safe length limits."""
    if len(title) > MAX_EMBED_TITLE:
        title = title[:MAX_EMBED_TITLE - 1] + "…"
    if len(description) > MAX_EMBED_DESCRIPTION:
        description = description[:MAX_EMBED_DESCRIPTION - 1] + "…"

    return discord.Embed(title=title, description=description, color=color)


def error_embed(message: str) -> discord.Embed:
    return safe_embed("Error", message, COLORS["error"])


def success_embed(message: str) -> discord.Embed:
    return safe_embed("Success", message, COLORS["success"])


def info_embed(message: str) -> discord.Embed:
    return safe_embed("Information", message, COLORS["info"])


async def safe_response(
    interaction: discord.Interaction,
    content: str | None = None,
    embed: discord.Embed | None = None,
    ephemeral: bool = False,
    **kwargs: Any,
) -> bool:
    """Respond to an interaction, falling back to a followup once it was answered."""
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content=content, embed=embed, ephemeral=ephemeral, **kwargs)
        else:
            await interaction.response.send_message(content=content, embed=embed, ephemeral=ephemeral, **kwargs)
        return True
    except discord.HTTPException as e:
        log.error("Failed to send response: %s", e)
        return False
