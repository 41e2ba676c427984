from __future__ import annotations

import pytest

from cabinet.services.reaction_roles_store import ReactionRolesStore
from cabinet.services.starboard_store import StarboardStore


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "cabinet-test.sqlite3")


@pytest.fixture
async def starboard_store(db_path):
    store = StarboardStore(db_path)
    await store.init()
    return store


@pytest.fixture
async def rr_store(db_path):
    store = ReactionRolesStore(db_path)
    await store.init()
    return store
