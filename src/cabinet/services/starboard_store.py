from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import aiosqlite

from .base import BaseService


class StarboardEntryExists(Exception):
    """Raised when a starboard entry for the source message was already created."""

    def __init__(self, source_message_id: int) -> None:
        super().__init__(f"Starboard entry already exists for message {source_message_id}")
        self.source_message_id = source_message_id


@dataclass
class StarboardEntry:
    """A source message currently listed on the starboard."""
    id: int
    source_message_id: int
    guild_id: int
    channel_id: int
    # None between row creation and the cross-post being sent
    starboard_message_id: Optional[int]
    star_count: int
    created_at: str

    @property
    def jump_url(self) -> str:
        return f"https://discord.com/channels/{self.guild_id}/{self.channel_id}/{self.source_message_id}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "messageId": str(self.source_message_id),
            "guildId": str(self.guild_id),
            "channelId": str(self.channel_id),
            "starboardMessageId": str(self.starboard_message_id) if self.starboard_message_id else "",
            "count": self.star_count,
            "createdAt": self.created_at,
        }


class StarboardStore(BaseService[StarboardEntry]):
    """Starboard entries keyed by source message id."""

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS starboard_entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source_message_id INTEGER NOT NULL UNIQUE,
                guild_id INTEGER NOT NULL,
                channel_id INTEGER NOT NULL,
                starboard_message_id INTEGER NULL,
                star_count INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
            """
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_starboard_guild_count ON starboard_entries(guild_id, star_count)"
        )

    def _from_row(self, row: aiosqlite.Row) -> StarboardEntry:
        return StarboardEntry(
            id=row["id"],
            source_message_id=row["source_message_id"],
            guild_id=row["guild_id"],
            channel_id=row["channel_id"],
            starboard_message_id=row["starboard_message_id"],
            star_count=row["star_count"],
            created_at=row["created_at"],
        )

    async def get(self, source_message_id: int) -> Optional[StarboardEntry]:
        async with self._connect() as db:
            async with db.execute(
                "SELECT * FROM starboard_entries WHERE source_message_id = ?",
                (int(source_message_id),),
            ) as cur:
                row = await cur.fetchone()
        return self._from_row(row) if row else None

    async def create(
        self,
        source_message_id: int,
        guild_id: int,
        channel_id: int,
        star_count: int,
        starboard_message_id: Optional[int] = None,
    ) -> StarboardEntry:
        """Insert a new entry.

        Raises StarboardEntryExists when another handler created the row first.
        """
        created_at = datetime.now(timezone.utc).isoformat()
        try:
            async with self._connect() as db:
                cursor = await db.execute(
                    """
                    INSERT INTO starboard_entries
                    (source_message_id, guild_id, channel_id, starboard_message_id, star_count, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        int(source_message_id),
                        int(guild_id),
                        int(channel_id),
                        starboard_message_id,
                        int(star_count),
                        created_at,
                    ),
                )
                await db.commit()
                entry_id = cursor.lastrowid
        except aiosqlite.IntegrityError as e:
            raise StarboardEntryExists(source_message_id) from e

        return StarboardEntry(
            id=entry_id,
            source_message_id=int(source_message_id),
            guild_id=int(guild_id),
            channel_id=int(channel_id),
            starboard_message_id=starboard_message_id,
            star_count=int(star_count),
            created_at=created_at,
        )

    async def update_count(self, source_message_id: int, star_count: int) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE starboard_entries SET star_count = ? WHERE source_message_id = ?",
                (int(star_count), int(source_message_id)),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def set_starboard_message(self, source_message_id: int, starboard_message_id: int) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE starboard_entries SET starboard_message_id = ? WHERE source_message_id = ?",
                (int(starboard_message_id), int(source_message_id)),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def delete(self, source_message_id: int) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM starboard_entries WHERE source_message_id = ?",
                (int(source_message_id),),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def top(self, guild_id: Optional[int] = None, limit: int = 10) -> list[StarboardEntry]:
        """Most-starred entries, optionally restricted to one guild."""
        if guild_id is None:
            query = "SELECT * FROM starboard_entries ORDER BY star_count DESC, id ASC LIMIT ?"
            params: tuple = (int(limit),)
        else:
            query = (
                "SELECT * FROM starboard_entries WHERE guild_id = ? "
                "ORDER BY star_count DESC, id ASC LIMIT ?"
            )
            params = (int(guild_id), int(limit))

        async with self._connect() as db:
            async with db.execute(query, params) as cur:
                rows = await cur.fetchall()
        return [self._from_row(row) for row in rows]
