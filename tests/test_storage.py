"""
Tests for vault repositories.

Tests cover:
- MemoryVaultRepository filtering, search and ordering
- PostgresVaultRepository SQL over a fake asyncpg-style pool
"""
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import pytest

from navigator_vault.vault import (
    EncryptedEnvelope,
    MemoryVaultRepository,
    NotFound,
    PostgresVaultRepository,
    VaultItem,
    VaultItemKind,
)
from navigator_vault.vault.storage import escape_like


BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_item(owner="user-1", title="Item", kind=VaultItemKind.NOTE, minutes=0, **kw):
    when = BASE + timedelta(minutes=minutes)
    return VaultItem(
        owner_id=owner,
        kind=kind,
        title=title,
        envelope=EncryptedEnvelope(cipher_and_tag=b"\x00" * 20, iv=b"\x01" * 16),
        created_at=when,
        updated_at=when,
        **kw,
    )


# --- Memory Repository ---

class TestMemoryRepository:
    """Tests for the dict-backed repository."""

    async def test_create_and_get(self):
        repo = MemoryVaultRepository()
        item = await repo.create(make_item())
        assert await repo.get(item.id) == item
        assert await repo.get("missing") is None

    async def test_duplicate_id_rejected(self):
        repo = MemoryVaultRepository()
        item = await repo.create(make_item())
        with pytest.raises(ValueError):
            await repo.create(item)

    async def test_find_by_owner_scoped(self):
        repo = MemoryVaultRepository()
        await repo.create(make_item(owner="user-1"))
        await repo.create(make_item(owner="user-2"))
        items = await repo.find_by_owner("user-1")
        assert [i.owner_id for i in items] == ["user-1"]

    async def test_filters(self):
        repo = MemoryVaultRepository()
        await repo.create(make_item(title="Bank", kind=VaultItemKind.PASSWORD, category="Money"))
        await repo.create(make_item(title="Mail", kind=VaultItemKind.CREDENTIAL, category="Accounts"))
        await repo.create(make_item(title="Diary", tags=["Personal"]))

        by_kind = await repo.find_by_owner("user-1", kind=VaultItemKind.PASSWORD)
        assert [i.title for i in by_kind] == ["Bank"]
        by_category = await repo.find_by_owner("user-1", category="Accounts")
        assert [i.title for i in by_category] == ["Mail"]
        by_title = await repo.find_by_owner("user-1", search="BAN")
        assert [i.title for i in by_title] == ["Bank"]
        by_tag = await repo.find_by_owner("user-1", search="person")
        assert [i.title for i in by_tag] == ["Diary"]

    async def test_ordering(self):
        repo = MemoryVaultRepository()
        await repo.create(make_item(title="old", minutes=0))
        await repo.create(make_item(title="new", minutes=5))
        newest = await repo.find_by_owner("user-1")
        assert [i.title for i in newest] == ["new", "old"]
        oldest = await repo.find_by_owner("user-1", newest_first=False)
        assert [i.title for i in oldest] == ["old", "new"]

    async def test_update_and_delete(self):
        repo = MemoryVaultRepository()
        item = await repo.create(make_item())
        await repo.update(item.model_copy(update={"title": "Renamed"}))
        assert (await repo.get(item.id)).title == "Renamed"
        await repo.delete(item.id)
        assert await repo.get(item.id) is None
        with pytest.raises(NotFound):
            await repo.delete(item.id)
        with pytest.raises(NotFound):
            await repo.update(item)

    async def test_delete_many(self):
        repo = MemoryVaultRepository()
        await repo.create(make_item(owner="user-1"))
        await repo.create(make_item(owner="user-1"))
        await repo.create(make_item(owner="user-2"))
        assert await repo.delete_many("user-1") == 2
        assert len(repo) == 1
        assert await repo.delete_many("user-1") == 0


# --- Postgres Repository ---

class FakeConnection:
    """Records statements and replays canned results."""

    def __init__(self):
        self.calls = []
        self.row = None
        self.rows = []
        self.status = "DELETE 0"

    async def fetchrow(self, sql, *args):
        self.calls.append((sql, args))
        return self.row

    async def fetch(self, sql, *args):
        self.calls.append((sql, args))
        return self.rows

    async def execute(self, sql, *args):
        self.calls.append((sql, args))
        return self.status


class FakePool:
    def __init__(self):
        self.conn = FakeConnection()

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


def as_row(item):
    return {
        "id": item.id,
        "owner_id": item.owner_id,
        "kind": item.kind.value,
        "title": item.title,
        "cipher_and_tag": memoryview(item.envelope.cipher_and_tag),
        "iv": item.envelope.iv,
        "category": item.category,
        "tags": item.tags,
        "icon": item.icon,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


@pytest.fixture
def pool():
    return FakePool()


class TestPostgresRepository:
    """Tests for the asyncpg-backed repository."""

    async def test_create(self, pool):
        item = make_item(tags=["a"], category="Work")
        pool.conn.row = as_row(item)
        repo = PostgresVaultRepository(pool)
        created = await repo.create(item)
        assert created == item
        sql, args = pool.conn.calls[0]
        assert "INSERT INTO auth.user_vault_items" in sql
        assert args[0] == item.id
        assert args[2] == "NOTE"
        assert args[4] == item.envelope.cipher_and_tag

    async def test_get_missing(self, pool):
        repo = PostgresVaultRepository(pool)
        assert await repo.get("missing") is None

    async def test_find_by_owner_builds_filters(self, pool):
        item = make_item()
        pool.conn.rows = [as_row(item)]
        repo = PostgresVaultRepository(pool)
        items = await repo.find_by_owner(
            "user-1", kind=VaultItemKind.NOTE, category="Work", search="50%_off",
        )
        assert items == [item]
        sql, args = pool.conn.calls[0]
        assert "owner_id = $1" in sql
        assert "kind = $2" in sql
        assert "category = $3" in sql
        assert "title ILIKE $4" in sql
        assert "ORDER BY updated_at DESC" in sql
        assert args == ("user-1", "NOTE", "Work", "%50\\%\\_off%")

    async def test_find_by_owner_creation_order(self, pool):
        repo = PostgresVaultRepository(pool)
        await repo.find_by_owner("user-1", newest_first=False)
        sql, args = pool.conn.calls[0]
        assert "ORDER BY created_at ASC" in sql
        assert args == ("user-1",)

    async def test_update_missing(self, pool):
        repo = PostgresVaultRepository(pool)
        with pytest.raises(NotFound):
            await repo.update(make_item())

    async def test_delete(self, pool):
        repo = PostgresVaultRepository(pool)
        pool.conn.status = "DELETE 1"
        await repo.delete("item-1")
        pool.conn.status = "DELETE 0"
        with pytest.raises(NotFound):
            await repo.delete("item-1")

    async def test_delete_many(self, pool):
        pool.conn.status = "DELETE 7"
        repo = PostgresVaultRepository(pool)
        assert await repo.delete_many("user-1") == 7
        assert pool.conn.calls[0][1] == ("user-1",)


def test_escape_like():
    assert escape_like("a%b_c\\d") == "a\\%b\\_c\\\\d"
