from __future__ import annotations

import os
from dataclasses import dataclass, field

from .constants import MAX_EMBEDS_PER_MESSAGE


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _get_str(name: str, default: str) -> str:
    return os.getenv(name, default).strip() or default


def _get_list(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    token: str
    sync_guild_id: int = 0
    sqlite_path: str = "cabinet.sqlite3"
    log_level: str = "INFO"

    # Starboard
    starboard_channel_name: str = "starboard"
    starboard_emoji: str = "⭐"
    starboard_min_stars: int = 2
    # Discord allows at most 10 embeds per message.
    starboard_top_limit: int = 10

    # Reaction roles: pause between reactions added during backfill
    backfill_delay_seconds: float = 1.0

    # Admin web API
    web_enabled: bool = True
    web_host: str = "0.0.0.0"
    web_port: int = 3000
    api_key: str = ""
    admin_ips: tuple[str, ...] = field(default_factory=tuple)
    static_dir: str = "public"


def load_settings() -> Settings:
    token = os.getenv("DISCORD_TOKEN", "").strip()
    if not token:
        raise RuntimeError("DISCORD_TOKEN is required")
    return Settings(
        token=token,
        sync_guild_id=_get_int("SYNC_GUILD_ID", 0),
        sqlite_path=_get_str("SQLITE_PATH", "cabinet.sqlite3"),
        log_level=_get_str("LOG_LEVEL", "INFO"),
        starboard_channel_name=_get_str("STARBOARD_CHANNEL_NAME", "starboard"),
        starboard_emoji=_get_str("STARBOARD_EMOJI", "⭐"),
        starboard_min_stars=max(1, _get_int("STARBOARD_MIN_STARS", 2)),
        starboard_top_limit=min(MAX_EMBEDS_PER_MESSAGE, max(1, _get_int("STARBOARD_TOP_LIMIT", MAX_EMBEDS_PER_MESSAGE))),
        backfill_delay_seconds=max(0.0, _get_float("BACKFILL_DELAY_SECONDS", 1.0)),
        web_enabled=_get_bool("WEB_ENABLED", True),
        web_host=_get_str("WEB_HOST", "0.0.0.0"),
        web_port=_get_int("PORT", 3000),
        api_key=os.getenv("API_KEY", "").strip(),
        admin_ips=_get_list("ADMIN_IPS"),
        static_dir=_get_str("STATIC_DIR", "public"),
    )
