"""Vault data models.

``VaultItem`` is the persisted record and carries the encrypted envelope
only. Callers get ``VaultItemView`` (no secret material) from listing
operations and ``VaultItemDetail`` (with decrypted ``data``) from
explicit reads and exports.
"""
import uuid
from enum import Enum
from typing import Optional
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _unique_tags(tags):
    """Strip, drop blanks and duplicates; anything else is left to validation."""
    if not tags:
        return []
    if not isinstance(tags, (list, tuple, set, frozenset)):
        return tags
    unique = []
    for tag in tags:
        if isinstance(tag, str):
            tag = tag.strip()
            if not tag:
                continue
        if tag not in unique:
            unique.append(tag)
    return unique


class VaultItemKind(str, Enum):
    PASSWORD = "PASSWORD"
    CREDENTIAL = "CREDENTIAL"
    DOCUMENT = "DOCUMENT"
    NOTE = "NOTE"
    API_KEY = "API_KEY"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: object) -> Optional["VaultItemKind"]:
        """Map a raw kind string to a member, case-insensitively.

        Returns None when nothing matches.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class EncryptedEnvelope(BaseModel):
    """AES-GCM output: ciphertext with appended tag, and its IV."""

    model_config = ConfigDict(frozen=True)

    cipher_and_tag: bytes = Field(repr=False)
    iv: bytes = Field(repr=False)


class VaultItem(BaseModel):
    """Persisted vault record. Immutable; updates go through ``model_copy``."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    owner_id: str
    kind: VaultItemKind
    title: str
    envelope: EncryptedEnvelope
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    icon: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        return _unique_tags(v)

    def to_view(self) -> "VaultItemView":
        return VaultItemView(
            id=self.id,
            kind=self.kind,
            title=self.title,
            category=self.category,
            tags=list(self.tags),
            icon=self.icon,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_detail(self, data: str) -> "VaultItemDetail":
        return VaultItemDetail(**self.to_view().model_dump(), data=data)


class VaultItemView(BaseModel):
    """Undecrypted view: metadata only."""

    id: str
    kind: VaultItemKind
    title: str
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    icon: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class VaultItemDetail(VaultItemView):
    """Decrypted view: metadata plus the secret payload."""

    data: str = Field(repr=False)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class VaultItemCreate(BaseModel):
    kind: VaultItemKind
    title: str = Field(min_length=1, max_length=255)
    data: str
    category: Optional[str] = Field(default=None, max_length=100)
    tags: list[str] = Field(default_factory=list)
    icon: Optional[str] = Field(default=None, max_length=50)

    @field_validator("kind", mode="before")
    @classmethod
    def parse_kind(cls, v):
        return VaultItemKind.parse(v) or v

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        return _unique_tags(v)


class VaultItemUpdate(BaseModel):
    """Partial update.

    Fields absent from the patch are left unchanged. An explicit ``None``
    clears ``category`` or ``icon``; for the other fields it is ignored.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    data: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    tags: Optional[list[str]] = None
    icon: Optional[str] = Field(default=None, max_length=50)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        if v is None:
            return None
        return _unique_tags(v)


class VaultQuery(BaseModel):
    kind: Optional[VaultItemKind] = None
    category: Optional[str] = None
    search: Optional[str] = None

    @field_validator("kind", mode="before")
    @classmethod
    def parse_kind(cls, v):
        if v is None or v == "":
            return None
        return VaultItemKind.parse(v) or v

    @field_validator("search", "category", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ImportRow(BaseModel):
    """One row of a bulk import; ``kind`` stays raw so bad rows can be skipped."""

    kind: str
    title: str = Field(min_length=1, max_length=255)
    data: str
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        return _unique_tags(v)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class ImportResult(BaseModel):
    imported: int


class VaultStats(BaseModel):
    total_items: int = 0
    counts: dict[VaultItemKind, int] = Field(default_factory=dict)
    categories: list[str] = Field(default_factory=list)
