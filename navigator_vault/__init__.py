"""Navigator Vault.

Per-user encrypted key/value store for passwords, credentials,
documents and notes.
"""
from .version import __version__
from .vault import (
    CipherEngine,
    VaultConfig,
    VaultStore,
    MemoryVaultRepository,
    PostgresVaultRepository,
)

__all__ = [
    "__version__",
    "CipherEngine",
    "VaultConfig",
    "VaultStore",
    "MemoryVaultRepository",
    "PostgresVaultRepository",
]
