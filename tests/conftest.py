"""Shared fixtures for vault tests."""
import pytest

from navigator_vault.vault import CipherEngine, MemoryVaultRepository, VaultStore

# Cheap scrypt cost so key derivation does not dominate the test run
TEST_SCRYPT_N = 2 ** 8

MASTER_SECRET = bytes.fromhex(
    "8f2c1e4b7a9d3f60c5e8b1a2d4f7093e6b5c8a1d2e3f40516273849a5b6c7d8e"
)
OTHER_SECRET = bytes.fromhex(
    "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"
)


@pytest.fixture
def engine():
    """Cipher engine over a fixed master secret."""
    return CipherEngine(MASTER_SECRET, scrypt_n=TEST_SCRYPT_N)


@pytest.fixture
def other_engine():
    """Cipher engine over a different master secret."""
    return CipherEngine(OTHER_SECRET, scrypt_n=TEST_SCRYPT_N)


@pytest.fixture
def repository():
    return MemoryVaultRepository()


@pytest.fixture
def store(engine, repository):
    """Vault store over an in-memory repository."""
    return VaultStore(engine, repository)
