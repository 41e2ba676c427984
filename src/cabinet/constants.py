from __future__ import annotations

from typing import Final

# Discord limits
MAX_EMBED_DESCRIPTION: Final[int] = 4096
MAX_EMBED_TITLE: Final[int] = 256
MAX_EMBEDS_PER_MESSAGE: Final[int] = 10

# Colors (hex values)
COLORS = {
    "default": 0x5865F2,
    "success": 0x57F287,
    "error": 0xED4245,
    "info": 0x3498DB,
    "star": 0xF1C40F,
}

# Starboard embed layout
STARS_FIELD_NAME: Final[str] = "Stars"
SOURCE_FIELD_NAME: Final[str] = "Source"
NO_CONTENT_PLACEHOLDER: Final[str] = "No content"

# Error messages
ERROR_MESSAGES = {
    "missing_permissions": "You don't have permission to use this command.",
    "generic": "Something went wrong running that command.",
}
