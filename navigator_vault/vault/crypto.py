"""
Vault Crypto Core: Per-user key derivation, encryption and search hashing.

- User key: scrypt(MASTER_SECRET, salt=user_id) → 32 bytes, never stored
- Envelope: AES-256-GCM with a fresh random 16-byte IV per call;
  ``cipher_and_tag`` is the ciphertext with the 16-byte tag appended,
  ``iv`` is kept separately.
- Search hash: HMAC-SHA256(user key, casefold(value)) truncated to 8 bytes.

Security Note:
    Never log plaintext, ciphertext, IVs or keys.
    Decryption failures are reported with one fixed message whatever
    the cause (wrong user, tampered ciphertext, tampered IV, truncation).
"""
import os
import asyncio
import string
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .config import KEY_LENGTH, VaultConfig
from .exceptions import DecryptionError, EncryptionError
from .models import EncryptedEnvelope

logger = logging.getLogger("navigator.vault")

IV_SIZE = 16
TAG_SIZE = 16
SEARCH_HASH_SIZE = 8  # bytes, 16 hex characters

PASSWORD_CHARSET = (
    string.ascii_letters + string.digits + "!@#$%^&*()-_=+[]{};:,.<>?"
)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_user_key(
    master_secret: bytes,
    user_id: str,
    n: int = 2 ** 14,
    r: int = 8,
    p: int = 1,
) -> bytes:
    """Derive a 32-byte per-user key with scrypt.

    The user id is the salt, so two users never share a key while the
    same user always gets the same one.

    Args:
        master_secret: Raw 32-byte master secret.
        user_id: Owner identifier used for domain separation.

    Returns:
        32-byte derived key.
    """
    if not user_id:
        raise ValueError("user_id is required for key derivation")
    kdf = Scrypt(
        salt=user_id.encode("utf-8"),
        length=KEY_LENGTH,
        n=n,
        r=r,
        p=p,
    )
    return kdf.derive(master_secret)


def generate_password(length: int = 16) -> str:
    """Generate a random password over a fixed printable charset.

    Each character comes from one random byte taken modulo the charset size.
    """
    if length < 1:
        raise ValueError(f"Password length must be positive, got {length}")
    size = len(PASSWORD_CHARSET)
    return "".join(PASSWORD_CHARSET[b % size] for b in os.urandom(length))


# ---------------------------------------------------------------------------
# User-bound cipher
# ---------------------------------------------------------------------------

class UserCipher:
    """Cipher bound to one user's derived key.

    Built by :meth:`CipherEngine.for_user`; batch operations hold one for
    the whole call so the key is derived once.
    """

    __slots__ = ("_user_id", "_key")

    def __init__(self, user_id: str, key: bytes):
        self._user_id = user_id
        self._key = key

    @property
    def user_id(self) -> str:
        return self._user_id

    def __repr__(self) -> str:
        return f"<UserCipher user={self._user_id!r}>"

    def encrypt(self, plaintext: str) -> EncryptedEnvelope:
        """Encrypt plaintext under a fresh IV.

        Raises:
            EncryptionError: On any cipher failure. No partial output.
        """
        try:
            iv = os.urandom(IV_SIZE)
            cipher_and_tag = AESGCM(self._key).encrypt(
                iv, plaintext.encode("utf-8"), None,
            )
        except Exception:
            logger.error("Vault encryption failed: user=%s", self._user_id)
            raise EncryptionError() from None
        return EncryptedEnvelope(cipher_and_tag=cipher_and_tag, iv=iv)

    def decrypt(self, cipher_and_tag: bytes, iv: bytes) -> str:
        """Authenticate and decrypt an envelope.

        The tag is verified before any plaintext is released.

        Raises:
            DecryptionError: For every failure cause.
        """
        if len(cipher_and_tag) < TAG_SIZE or not iv:
            raise DecryptionError()
        try:
            plaintext = AESGCM(self._key).decrypt(iv, cipher_and_tag, None)
            return plaintext.decode("utf-8")
        except (InvalidTag, ValueError):
            raise DecryptionError() from None

    def hash_for_search(self, value: str) -> str:
        """Keyed, case-insensitive, truncated hash of ``value``.

        Short on purpose: an index aid, not proof of content.
        """
        mac = hmac.HMAC(self._key, hashes.SHA256())
        mac.update(value.casefold().encode("utf-8"))
        return mac.finalize()[:SEARCH_HASH_SIZE].hex()


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class CipherEngine:
    """Owns the master secret and performs every cryptographic operation.

    Holds no mutable state; the derived key is recomputed on each call
    (or once per :class:`UserCipher`), never cached across requests.
    """

    def __init__(
        self,
        master_secret: bytes,
        *,
        scrypt_n: int = 2 ** 14,
        scrypt_r: int = 8,
        scrypt_p: int = 1,
    ):
        if len(master_secret) != KEY_LENGTH:
            raise ValueError(
                f"master_secret must be exactly {KEY_LENGTH} bytes"
            )
        self._master_secret = master_secret
        self._n = scrypt_n
        self._r = scrypt_r
        self._p = scrypt_p

    def __repr__(self) -> str:
        return f"<CipherEngine scrypt n={self._n} r={self._r} p={self._p}>"

    @classmethod
    def from_config(cls, config: VaultConfig) -> "CipherEngine":
        return cls(
            config.master_secret,
            scrypt_n=config.scrypt_n,
            scrypt_r=config.scrypt_r,
            scrypt_p=config.scrypt_p,
        )

    def derive_user_key(self, user_id: str) -> bytes:
        return derive_user_key(
            self._master_secret, user_id, self._n, self._r, self._p,
        )

    def for_user(self, user_id: str) -> UserCipher:
        """Derive the user's key once and return a cipher bound to it."""
        return UserCipher(user_id, self.derive_user_key(user_id))

    async def for_user_async(self, user_id: str) -> UserCipher:
        """:meth:`for_user` run in the default executor.

        scrypt is CPU-bound; coroutines must not derive keys on the loop.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.for_user, user_id)

    def encrypt(self, plaintext: str, user_id: str) -> EncryptedEnvelope:
        return self.for_user(user_id).encrypt(plaintext)

    def decrypt(self, cipher_and_tag: bytes, iv: bytes, user_id: str) -> str:
        return self.for_user(user_id).decrypt(cipher_and_tag, iv)

    def hash_for_search(self, value: str, user_id: str) -> str:
        return self.for_user(user_id).hash_for_search(value)

    def generate_password(self, length: int = 16) -> str:
        return generate_password(length)
