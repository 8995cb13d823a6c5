"""
VaultStore: Ownership-gated lifecycle of encrypted vault items.

Provides the public API of the vault:
- ``create`` / ``update``: encrypt the payload and persist (fresh IV on
  every payload change)
- ``list_for_owner``: metadata views only, never secret material
- ``get_one_decrypted``: single decrypted item after ownership check
- ``delete`` / ``delete_all``: single and bulk removal
- ``export_all`` / ``import_items``: decrypted export and bulk import
- ``get_stats`` / ``generate_password``: utilities

Security Note:
    Decrypted payloads live only for the duration of a call. Never log
    plaintext or ciphertext values; only user ids, item ids and counts.
"""
import logging
from typing import Any, Iterable, Union
from datetime import datetime, timezone

import orjson
from pydantic import ValidationError

from .config import VaultConfig
from .crypto import CipherEngine, UserCipher
from .exceptions import CryptoFault
from .models import (
    ImportResult,
    ImportRow,
    VaultItem,
    VaultItemCreate,
    VaultItemDetail,
    VaultItemKind,
    VaultItemUpdate,
    VaultItemView,
    VaultQuery,
    VaultStats,
)
from .ownership import verify_ownership
from .storage import VaultRepository

logger = logging.getLogger("navigator.vault")


class VaultStore:
    """Vault items of every user, each readable only by its owner.

    All cryptography is delegated to the :class:`CipherEngine`; all
    persistence to the :class:`VaultRepository`.
    """

    entity_name = "Vault item"

    def __init__(
        self,
        engine: CipherEngine,
        repository: VaultRepository,
        *,
        hide_foreign_items: bool = False,
    ):
        self._engine = engine
        self._repo = repository
        self._hide_foreign = hide_foreign_items

    @classmethod
    def from_config(
        cls, config: VaultConfig, repository: VaultRepository,
    ) -> "VaultStore":
        return cls(
            CipherEngine.from_config(config),
            repository,
            hide_foreign_items=config.hide_foreign_items,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _owned(self, user_id: str, item_id: str) -> VaultItem:
        return verify_ownership(
            await self._repo.get(item_id),
            user_id,
            entity_name=self.entity_name,
            hide_foreign=self._hide_foreign,
        )

    def _open(self, cipher: UserCipher, item: VaultItem) -> VaultItemDetail:
        try:
            data = cipher.decrypt(item.envelope.cipher_and_tag, item.envelope.iv)
        except CryptoFault:
            logger.error(
                "Vault item could not be opened: user=%s item=%s",
                cipher.user_id, item.id,
            )
            raise
        return item.to_detail(data)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create(
        self, user_id: str, payload: Union[VaultItemCreate, dict],
    ) -> VaultItemView:
        """Encrypt ``payload.data`` and persist a new item owned by ``user_id``."""
        if not isinstance(payload, VaultItemCreate):
            payload = VaultItemCreate.model_validate(payload)
        cipher = await self._engine.for_user_async(user_id)
        envelope = cipher.encrypt(payload.data)
        item = await self._repo.create(
            VaultItem(
                owner_id=user_id,
                kind=payload.kind,
                title=payload.title,
                envelope=envelope,
                category=payload.category,
                tags=payload.tags,
                icon=payload.icon,
            )
        )
        logger.debug("Vault create: user=%s item=%s", user_id, item.id)
        return item.to_view()

    async def list_for_owner(
        self, user_id: str, query: Union[VaultQuery, dict, None] = None,
    ) -> list[VaultItemView]:
        """Undecrypted views of the caller's items, most recently updated first."""
        if query is None:
            query = VaultQuery()
        elif not isinstance(query, VaultQuery):
            query = VaultQuery.model_validate(query)
        items = await self._repo.find_by_owner(
            user_id,
            kind=query.kind,
            category=query.category,
            search=query.search,
        )
        return [item.to_view() for item in items]

    async def get_one_decrypted(
        self, user_id: str, item_id: str,
    ) -> VaultItemDetail:
        """Return the item with its plaintext under ``data``.

        Raises:
            NotFound: No item with that id.
            Forbidden: Item belongs to someone else.
            DecryptionError: Envelope could not be authenticated.
        """
        item = await self._owned(user_id, item_id)
        detail = self._open(await self._engine.for_user_async(user_id), item)
        logger.debug("Vault read: user=%s item=%s", user_id, item_id)
        return detail

    async def update(
        self,
        user_id: str,
        item_id: str,
        patch: Union[VaultItemUpdate, dict],
    ) -> VaultItemView:
        """Apply ``patch``; a new payload is re-encrypted under a fresh IV.

        ``updated_at`` is bumped even when nothing else changes.
        """
        if not isinstance(patch, VaultItemUpdate):
            patch = VaultItemUpdate.model_validate(patch)
        item = await self._owned(user_id, item_id)

        changes: dict[str, Any] = {
            k: v for k, v in patch.model_dump(
                exclude_unset=True, exclude={"data"},
            ).items()
            if v is not None or k in ("category", "icon")
        }
        if patch.data is not None:
            cipher = await self._engine.for_user_async(user_id)
            changes["envelope"] = cipher.encrypt(patch.data)
        changes["updated_at"] = datetime.now(timezone.utc)

        updated = await self._repo.update(item.model_copy(update=changes))
        logger.debug(
            "Vault update: user=%s item=%s reencrypted=%s",
            user_id, item_id, "envelope" in changes,
        )
        return updated.to_view()

    async def delete(self, user_id: str, item_id: str) -> None:
        await self._owned(user_id, item_id)
        await self._repo.delete(item_id)
        logger.debug("Vault delete: user=%s item=%s", user_id, item_id)

    async def delete_all(self, user_id: str) -> int:
        """Remove every item of ``user_id``; returns how many were removed."""
        count = await self._repo.delete_many(user_id)
        logger.info("Vault cleared for user=%s: %d item(s)", user_id, count)
        return count

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    async def export_all(self, user_id: str) -> list[VaultItemDetail]:
        """Decrypt every item of ``user_id`` in creation order.

        Unpaged: the whole vault is held in memory for the call. Any item
        that fails to decrypt aborts the export.
        """
        items = await self._repo.find_by_owner(user_id, newest_first=False)
        if not items:
            return []
        cipher = await self._engine.for_user_async(user_id)
        exported = [self._open(cipher, item) for item in items]
        logger.info("Vault export for user=%s: %d item(s)", user_id, len(exported))
        return exported

    async def import_items(
        self, user_id: str, rows: Iterable[Union[ImportRow, dict]],
    ) -> ImportResult:
        """Encrypt and persist each row; rows with an unknown kind are skipped.

        Every row is validated before the first one is written, so a
        malformed row raises ``ValidationError`` with nothing persisted.
        """
        accepted: list[tuple[VaultItemKind, ImportRow]] = []
        for row in rows:
            if not isinstance(row, ImportRow):
                row = ImportRow.model_validate(row)
            kind = VaultItemKind.parse(row.kind)
            if kind is None:
                logger.warning("Skipping invalid vault item kind: %s", row.kind)
                continue
            accepted.append((kind, row))
        if not accepted:
            logger.info("Vault import for user=%s: 0 item(s)", user_id)
            return ImportResult(imported=0)

        cipher = await self._engine.for_user_async(user_id)
        imported = 0
        for kind, row in accepted:
            await self._repo.create(
                VaultItem(
                    owner_id=user_id,
                    kind=kind,
                    title=row.title,
                    envelope=cipher.encrypt(row.data),
                    category=row.category,
                    tags=row.tags,
                )
            )
            imported += 1
        logger.info("Vault import for user=%s: %d item(s)", user_id, imported)
        return ImportResult(imported=imported)

    async def export_json(self, user_id: str) -> bytes:
        """Decrypted export serialized as a JSON document."""
        items = await self.export_all(user_id)
        return orjson.dumps(
            {"items": [item.model_dump(mode="json") for item in items]}
        )

    async def import_json(self, user_id: str, payload: bytes) -> ImportResult:
        """Import a document produced by :meth:`export_json` (or a bare list).

        Raises:
            ValueError: If ``payload`` is not a JSON list of rows.
        """
        try:
            document = orjson.loads(payload)
        except orjson.JSONDecodeError as err:
            raise ValueError(f"Invalid vault import document: {err}") from err
        rows = document.get("items") if isinstance(document, dict) else document
        if not isinstance(rows, list):
            raise ValueError("Vault import document must contain a list of items")
        try:
            parsed = [
                ImportRow.model_validate(
                    {**row, "kind": row.get("kind") or row.get("type", "")}
                )
                for row in rows
            ]
        except (TypeError, AttributeError, ValidationError) as err:
            raise ValueError(f"Invalid vault import row: {err}") from err
        return await self.import_items(user_id, parsed)

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    async def get_stats(self, user_id: str) -> VaultStats:
        items = await self._repo.find_by_owner(user_id, newest_first=False)
        counts: dict[VaultItemKind, int] = {}
        categories: dict[str, None] = {}
        for item in items:
            counts[item.kind] = counts.get(item.kind, 0) + 1
            if item.category:
                categories.setdefault(item.category, None)
        return VaultStats(
            total_items=len(items),
            counts=counts,
            categories=list(categories),
        )

    def generate_password(self, length: int = 16) -> str:
        """Pass-through to the engine; callers clamp ``length``."""
        return self._engine.generate_password(length)
