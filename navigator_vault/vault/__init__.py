"""Personal Vault: Per-user encrypted secret storage.

Security Note (Threat Model):
    Every user key is derived from one process-wide master secret with
    scrypt, using the user id as salt. This separates users from each
    other but does not make their keys independent: whoever obtains the
    master secret can open every vault. Bounding that blast radius would
    need a random per-user key wrapped by the master secret, which is
    not implemented here.
"""

from .config import VaultConfig, load_master_secret, generate_master_key
from .crypto import CipherEngine, UserCipher, derive_user_key, generate_password
from .exceptions import (
    VaultError,
    NotFound,
    Forbidden,
    CryptoFault,
    EncryptionError,
    DecryptionError,
    ConfigFault,
)
from .models import (
    VaultItemKind,
    EncryptedEnvelope,
    VaultItem,
    VaultItemView,
    VaultItemDetail,
    VaultItemCreate,
    VaultItemUpdate,
    VaultQuery,
    ImportRow,
    ImportResult,
    VaultStats,
)
from .ownership import verify_ownership
from .storage import VaultRepository, MemoryVaultRepository, PostgresVaultRepository
from .store import VaultStore

__all__ = [
    "VaultConfig",
    "load_master_secret",
    "generate_master_key",
    "CipherEngine",
    "UserCipher",
    "derive_user_key",
    "generate_password",
    "VaultError",
    "NotFound",
    "Forbidden",
    "CryptoFault",
    "EncryptionError",
    "DecryptionError",
    "ConfigFault",
    "VaultItemKind",
    "EncryptedEnvelope",
    "VaultItem",
    "VaultItemView",
    "VaultItemDetail",
    "VaultItemCreate",
    "VaultItemUpdate",
    "VaultQuery",
    "ImportRow",
    "ImportResult",
    "VaultStats",
    "verify_ownership",
    "VaultRepository",
    "MemoryVaultRepository",
    "PostgresVaultRepository",
    "VaultStore",
]
