"""
Vault persistence: keyed storage of opaque ``VaultItem`` records.

The store only needs create / get / find-by-owner / update / delete /
delete-many. Consistency of concurrent writes to one item is left to the
backend (last writer wins).

Security Note:
    Repositories see envelopes only, never plaintext.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from .exceptions import NotFound
from .models import EncryptedEnvelope, VaultItem, VaultItemKind

logger = logging.getLogger("navigator.vault")


class VaultRepository(ABC):
    """Abstract async repository of vault items."""

    @abstractmethod
    async def create(self, item: VaultItem) -> VaultItem:
        ...

    @abstractmethod
    async def get(self, item_id: str) -> Optional[VaultItem]:
        ...

    @abstractmethod
    async def find_by_owner(
        self,
        owner_id: str,
        *,
        kind: Optional[VaultItemKind] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        newest_first: bool = True,
    ) -> list[VaultItem]:
        """Items of ``owner_id`` matching every filter given.

        ``search`` is a case-insensitive substring match on title or any tag.
        ``newest_first`` orders by last update descending; otherwise by
        creation ascending.
        """

    @abstractmethod
    async def update(self, item: VaultItem) -> VaultItem:
        ...

    @abstractmethod
    async def delete(self, item_id: str) -> None:
        ...

    @abstractmethod
    async def delete_many(self, owner_id: str) -> int:
        ...


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

def _matches(item: VaultItem, search: str) -> bool:
    term = search.casefold()
    if term in item.title.casefold():
        return True
    return any(term in tag.casefold() for tag in item.tags)


class MemoryVaultRepository(VaultRepository):
    """Dict-backed repository, kept in insertion (creation) order."""

    def __init__(self):
        self._items: dict[str, VaultItem] = {}

    def __len__(self) -> int:
        return len(self._items)

    async def create(self, item: VaultItem) -> VaultItem:
        if item.id in self._items:
            raise ValueError(f"Vault item {item.id} already exists")
        self._items[item.id] = item
        return item

    async def get(self, item_id: str) -> Optional[VaultItem]:
        return self._items.get(item_id)

    async def find_by_owner(
        self,
        owner_id: str,
        *,
        kind: Optional[VaultItemKind] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        newest_first: bool = True,
    ) -> list[VaultItem]:
        items = [
            item for item in self._items.values()
            if item.owner_id == owner_id
            and (kind is None or item.kind == kind)
            and (category is None or item.category == category)
            and (not search or _matches(item, search))
        ]
        if newest_first:
            return sorted(items, key=lambda i: i.updated_at, reverse=True)
        return sorted(items, key=lambda i: i.created_at)

    async def update(self, item: VaultItem) -> VaultItem:
        if item.id not in self._items:
            raise NotFound()
        self._items[item.id] = item
        return item

    async def delete(self, item_id: str) -> None:
        if self._items.pop(item_id, None) is None:
            raise NotFound()

    async def delete_many(self, owner_id: str) -> int:
        doomed = [k for k, v in self._items.items() if v.owner_id == owner_id]
        for key in doomed:
            del self._items[key]
        return len(doomed)


# ---------------------------------------------------------------------------
# PostgreSQL backend
# ---------------------------------------------------------------------------

_COLUMNS = (
    "id, owner_id, kind, title, cipher_and_tag, iv, "
    "category, tags, icon, created_at, updated_at"
)

_INSERT_ITEM = f"""
INSERT INTO auth.user_vault_items ({_COLUMNS})
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
RETURNING {_COLUMNS}
"""

_SELECT_ITEM = f"""
SELECT {_COLUMNS}
FROM auth.user_vault_items
WHERE id = $1
"""

_SELECT_BY_OWNER = f"""
SELECT {_COLUMNS}
FROM auth.user_vault_items
WHERE {{where}}
ORDER BY {{order}}
"""

_UPDATE_ITEM = f"""
UPDATE auth.user_vault_items
SET title = $2, cipher_and_tag = $3, iv = $4,
    category = $5, tags = $6, icon = $7, updated_at = $8
WHERE id = $1
RETURNING {_COLUMNS}
"""

_DELETE_ITEM = """
DELETE FROM auth.user_vault_items
WHERE id = $1
"""

_DELETE_BY_OWNER = """
DELETE FROM auth.user_vault_items
WHERE owner_id = $1
"""


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so ``term`` matches literally."""
    return (
        term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )


def _affected_rows(status: str) -> int:
    """Parse the row count out of a command status such as ``DELETE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


def _row_to_item(row: Any) -> VaultItem:
    return VaultItem(
        id=row["id"],
        owner_id=row["owner_id"],
        kind=VaultItemKind(row["kind"]),
        title=row["title"],
        envelope=EncryptedEnvelope(
            cipher_and_tag=bytes(row["cipher_and_tag"]),
            iv=bytes(row["iv"]),
        ),
        category=row["category"],
        tags=list(row["tags"] or []),
        icon=row["icon"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresVaultRepository(VaultRepository):
    """Repository over an asyncpg-compatible connection pool.

    Expects table ``auth.user_vault_items`` with ``bytea`` envelope columns
    and a ``text[]`` tags column.
    """

    def __init__(self, db_pool: Any):
        self._db = db_pool

    async def create(self, item: VaultItem) -> VaultItem:
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(
                _INSERT_ITEM,
                item.id, item.owner_id, item.kind.value, item.title,
                item.envelope.cipher_and_tag, item.envelope.iv,
                item.category, list(item.tags), item.icon,
                item.created_at, item.updated_at,
            )
        return _row_to_item(row)

    async def get(self, item_id: str) -> Optional[VaultItem]:
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(_SELECT_ITEM, item_id)
        return _row_to_item(row) if row is not None else None

    async def find_by_owner(
        self,
        owner_id: str,
        *,
        kind: Optional[VaultItemKind] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        newest_first: bool = True,
    ) -> list[VaultItem]:
        conditions = ["owner_id = $1"]
        args: list[Any] = [owner_id]
        if kind is not None:
            args.append(kind.value)
            conditions.append(f"kind = ${len(args)}")
        if category is not None:
            args.append(category)
            conditions.append(f"category = ${len(args)}")
        if search:
            args.append(f"%{escape_like(search)}%")
            n = len(args)
            conditions.append(
                f"(title ILIKE ${n} OR EXISTS ("
                f"SELECT 1 FROM unnest(tags) AS t(tag) WHERE tag ILIKE ${n}))"
            )
        order = "updated_at DESC" if newest_first else "created_at ASC"
        sql = _SELECT_BY_OWNER.format(
            where=" AND ".join(conditions), order=order,
        )
        async with self._db.acquire() as conn:
            rows = await conn.fetch(sql, *args)
        return [_row_to_item(row) for row in rows]

    async def update(self, item: VaultItem) -> VaultItem:
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(
                _UPDATE_ITEM,
                item.id, item.title,
                item.envelope.cipher_and_tag, item.envelope.iv,
                item.category, list(item.tags), item.icon, item.updated_at,
            )
        if row is None:
            raise NotFound()
        return _row_to_item(row)

    async def delete(self, item_id: str) -> None:
        async with self._db.acquire() as conn:
            status = await conn.execute(_DELETE_ITEM, item_id)
        if _affected_rows(status) == 0:
            raise NotFound()

    async def delete_many(self, owner_id: str) -> int:
        async with self._db.acquire() as conn:
            status = await conn.execute(_DELETE_BY_OWNER, owner_id)
        count = _affected_rows(status)
        logger.debug("Deleted %d vault row(s) for owner=%s", count, owner_id)
        return count
