"""
Vault Configuration: Master secret loading and validated settings.

Reads the master secret from environment variables:
    VAULT_ENCRYPTION_KEY = <64 hex chars> | <passphrase>
    VAULT_KEY_SALT = <salt used to slow-hash a passphrase>
    VAULT_ENVIRONMENT = production | development | test

A missing master secret is fatal in production. Anywhere else a fixed,
publicly known development key is derived instead, which is only good
for local work.

Security Note:
    Never log key material. Only log the environment and which source
    the master secret came from.
"""
import os
import re
import secrets
import logging
from typing import Optional

from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from pydantic import BaseModel, Field, field_validator

from .exceptions import ConfigFault

logger = logging.getLogger("navigator.vault")

KEY_LENGTH = 32  # AES-256

DEFAULT_KEY_SALT = "navigator-vault"
DEVELOPMENT_KEY_LABEL = "navigator-vault-insecure-development-key"

ENVIRONMENTS = ("production", "development", "test")

_HEX_KEY_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")

# Passphrases are hashed once per process start
_PASSPHRASE_SCRYPT_N = 2 ** 14


def _hash_passphrase(passphrase: str, salt: str) -> bytes:
    kdf = Scrypt(
        salt=salt.encode("utf-8"),
        length=KEY_LENGTH,
        n=_PASSPHRASE_SCRYPT_N,
        r=8,
        p=1,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def load_master_secret(
    value: Optional[str],
    salt: Optional[str] = None,
    environment: str = "development",
) -> bytes:
    """Turn the operator-supplied master secret into 32 raw bytes.

    Args:
        value: 64 hex characters (raw 256-bit key) or a passphrase.
        salt: Salt used when ``value`` is a passphrase.
        environment: Deployment environment name.

    Returns:
        32-byte master secret.

    Raises:
        ConfigFault: If no value is supplied and environment is production.
    """
    salt = salt or DEFAULT_KEY_SALT
    if not value:
        if environment == "production":
            raise ConfigFault(
                "VAULT_ENCRYPTION_KEY is required in production. "
                "Generate one with navigator_vault.vault.generate_master_key()"
            )
        logger.warning(
            "VAULT_ENCRYPTION_KEY is not set; using the insecure development "
            "key (environment=%s). Do not store real secrets.",
            environment,
        )
        return _hash_passphrase(DEVELOPMENT_KEY_LABEL, salt)
    if _HEX_KEY_PATTERN.match(value):
        logger.debug("Master secret loaded from raw hex key")
        return bytes.fromhex(value)
    logger.debug("Master secret derived from passphrase")
    return _hash_passphrase(value, salt)


def generate_master_key() -> str:
    """Generate a random 32-byte master key and return it as hex.

    This is a utility for operators to generate new keys.
    """
    return secrets.token_hex(KEY_LENGTH)


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    master_secret: bytes = Field(repr=False)
    environment: str = Field(default="development")
    scrypt_n: int = Field(default=2 ** 14)
    scrypt_r: int = Field(default=8, ge=1)
    scrypt_p: int = Field(default=1, ge=1)
    hide_foreign_items: bool = False

    @field_validator("master_secret")
    @classmethod
    def validate_master_secret(cls, v: bytes) -> bytes:
        """Master secret must be exactly 256 bits."""
        if len(v) != KEY_LENGTH:
            raise ValueError(
                f"master_secret must be exactly {KEY_LENGTH} bytes, got {len(v)}"
            )
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        v = v.lower()
        if v not in ENVIRONMENTS:
            raise ValueError(f"Unsupported environment: {v}")
        return v

    @field_validator("scrypt_n")
    @classmethod
    def validate_scrypt_n(cls, v: int) -> int:
        """scrypt requires a cost factor that is a power of two above 1."""
        if v < 2 or v & (v - 1):
            raise ValueError(f"scrypt_n must be a power of two > 1, got {v}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Raises:
            ConfigFault: If the master secret is missing in production.
        """
        environment = os.environ.get("VAULT_ENVIRONMENT", "development").lower()
        master_secret = load_master_secret(
            os.environ.get("VAULT_ENCRYPTION_KEY"),
            os.environ.get("VAULT_KEY_SALT"),
            environment,
        )
        hide = os.environ.get("VAULT_HIDE_FOREIGN_ITEMS", "false").lower()
        return cls(
            master_secret=master_secret,
            environment=environment,
            scrypt_n=int(os.environ.get("VAULT_SCRYPT_N", 2 ** 14)),
            scrypt_r=int(os.environ.get("VAULT_SCRYPT_R", 8)),
            scrypt_p=int(os.environ.get("VAULT_SCRYPT_P", 1)),
            hide_foreign_items=hide in ("1", "true", "yes", "on"),
        )
