from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import aiosqlite

from .base import BaseService


@dataclass
class ReactionRoleBinding:
    """A (message, reaction) pair that grants a role."""
    id: int
    message_id: int
    role_id: int
    reaction: str
    created_at: str

    def to_dict(self) -> dict:
        # Snowflakes are sent as strings, JS numbers cannot hold them
        return {
            "id": self.id,
            "messageId": str(self.message_id),
            "roleId": str(self.role_id),
            "reaction": self.reaction,
            "createdAt": self.created_at,
        }


class ReactionRolesStore(BaseService[ReactionRoleBinding]):
    """Store for reaction role bindings.

    Nothing stops two rows sharing a (message, reaction) pair; readers
    resolve duplicates by taking the most recently created row.
    """

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS reaction_roles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                message_id INTEGER NOT NULL,
                role_id INTEGER NOT NULL,
                reaction TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        await db.execute("CREATE INDEX IF NOT EXISTS idx_rr_message_id ON reaction_roles(message_id)")

    def _from_row(self, row: aiosqlite.Row) -> ReactionRoleBinding:
        return ReactionRoleBinding(
            id=row["id"],
            message_id=row["message_id"],
            role_id=row["role_id"],
            reaction=row["reaction"],
            created_at=row["created_at"],
        )

    async def list_all(self) -> list[ReactionRoleBinding]:
        async with self._connect() as db:
            async with db.execute("SELECT * FROM reaction_roles ORDER BY id") as cur:
                rows = await cur.fetchall()
        return [self._from_row(row) for row in rows]

    async def get(self, binding_id: int) -> Optional[ReactionRoleBinding]:
        async with self._connect() as db:
            async with db.execute("SELECT * FROM reaction_roles WHERE id = ?", (int(binding_id),)) as cur:
                row = await cur.fetchone()
        return self._from_row(row) if row else None

    async def create(self, message_id: int, role_id: int, reaction: str) -> ReactionRoleBinding:
        created_at = datetime.now(timezone.utc).isoformat()
        async with self._connect() as db:
            cursor = await db.execute(
                "INSERT INTO reaction_roles (message_id, role_id, reaction, created_at) VALUES (?, ?, ?, ?)",
                (int(message_id), int(role_id), reaction, created_at),
            )
            await db.commit()
            binding_id = cursor.lastrowid

        self._logger.info("Added reaction role: message=%s role=%s reaction=%s", message_id, role_id, reaction)
        return ReactionRoleBinding(
            id=binding_id,
            message_id=int(message_id),
            role_id=int(role_id),
            reaction=reaction,
            created_at=created_at,
        )

    async def delete(self, binding_id: int) -> bool:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM reaction_roles WHERE id = ?", (int(binding_id),))
            await db.commit()
            deleted = cursor.rowcount > 0

        if deleted:
            self._logger.info("Removed reaction role %s", binding_id)
        return deleted

    async def delete_for_message_role(self, message_id: int, role_id: int) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM reaction_roles WHERE message_id = ? AND role_id = ?",
                (int(message_id), int(role_id)),
            )
            await db.commit()
            return cursor.rowcount

    async def find(self, message_id: int, reaction: str) -> Optional[ReactionRoleBinding]:
        """Latest binding for a message and normalized reaction key."""
        async with self._connect() as db:
            async with db.execute(
                "SELECT * FROM reaction_roles WHERE message_id = ? AND reaction = ? ORDER BY id DESC LIMIT 1",
                (int(message_id), reaction),
            ) as cur:
                row = await cur.fetchone()
        return self._from_row(row) if row else None
