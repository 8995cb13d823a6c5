"""Vault error taxonomy.

``NotFound`` and ``Forbidden`` are caller-correctable and meant to be
translated by the calling layer. ``CryptoFault`` messages are fixed strings:
they never say why an operation failed, so they cannot be used as an oracle.
``ConfigFault`` is raised at startup only.
"""


class VaultError(Exception):
    """Base class for every vault error."""


class NotFound(VaultError):
    """No record with the requested id exists."""

    def __init__(self, entity_name: str = "Vault item"):
        self.entity_name = entity_name
        super().__init__(f"{entity_name} not found")


class Forbidden(VaultError):
    """The record exists but belongs to another user."""

    def __init__(self, entity_name: str = "Vault item"):
        self.entity_name = entity_name
        super().__init__(f"You do not have access to this {entity_name.lower()}")


class CryptoFault(VaultError):
    """Encryption or decryption failed."""

    message = "Cryptographic operation failed"

    def __init__(self):
        super().__init__(self.message)


class EncryptionError(CryptoFault):
    message = "Encryption failed"


class DecryptionError(CryptoFault):
    message = "Decryption failed"


class ConfigFault(VaultError, RuntimeError):
    """Vault cannot start with the supplied configuration."""
