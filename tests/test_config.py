"""Tests for master secret loading and VaultConfig validation."""
import logging

import pytest
from pydantic import ValidationError

from navigator_vault.vault import (
    ConfigFault,
    VaultConfig,
    generate_master_key,
    load_master_secret,
)

HEX_KEY = "8f2c1e4b7a9d3f60c5e8b1a2d4f7093e6b5c8a1d2e3f40516273849a5b6c7d8e"


class TestLoadMasterSecret:
    """Tests for load_master_secret()."""

    def test_raw_hex_key(self):
        assert load_master_secret(HEX_KEY) == bytes.fromhex(HEX_KEY)

    def test_uppercase_hex_key(self):
        assert load_master_secret(HEX_KEY.upper()) == bytes.fromhex(HEX_KEY)

    def test_passphrase_is_hashed(self):
        secret = load_master_secret("test-encryption-key", "test-salt")
        assert len(secret) == 32
        assert secret == load_master_secret("test-encryption-key", "test-salt")

    def test_passphrase_salt_matters(self):
        first = load_master_secret("test-encryption-key", "salt-a")
        second = load_master_secret("test-encryption-key", "salt-b")
        assert first != second

    def test_missing_in_production_is_fatal(self):
        with pytest.raises(ConfigFault):
            load_master_secret(None, environment="production")
        with pytest.raises(ConfigFault):
            load_master_secret("", environment="production")

    def test_missing_in_development_falls_back(self, caplog):
        with caplog.at_level(logging.WARNING, logger="navigator.vault"):
            secret = load_master_secret(None, environment="development")
        assert len(secret) == 32
        assert secret == load_master_secret(None, environment="test")
        assert "insecure development key" in caplog.text

    def test_config_fault_is_runtime_error(self):
        with pytest.raises(RuntimeError):
            load_master_secret(None, environment="production")


class TestGenerateMasterKey:

    def test_generated_key_loads(self):
        key = generate_master_key()
        assert len(key) == 64
        assert load_master_secret(key) == bytes.fromhex(key)

    def test_generated_keys_differ(self):
        assert generate_master_key() != generate_master_key()


class TestVaultConfig:
    """Tests for VaultConfig validation."""

    def test_defaults(self):
        config = VaultConfig(master_secret=bytes.fromhex(HEX_KEY))
        assert config.environment == "development"
        assert config.scrypt_n == 2 ** 14
        assert config.hide_foreign_items is False
        assert config.is_production is False

    def test_master_secret_length(self):
        with pytest.raises(ValidationError):
            VaultConfig(master_secret=b"short")

    def test_master_secret_not_in_repr(self):
        config = VaultConfig(master_secret=bytes.fromhex(HEX_KEY))
        assert "master_secret" not in repr(config)

    @pytest.mark.parametrize("n", [0, 1, 3, 1000])
    def test_scrypt_n_power_of_two(self, n):
        with pytest.raises(ValidationError):
            VaultConfig(master_secret=bytes.fromhex(HEX_KEY), scrypt_n=n)

    def test_unknown_environment(self):
        with pytest.raises(ValidationError):
            VaultConfig(master_secret=bytes.fromhex(HEX_KEY), environment="staging")


class TestFromEnv:
    """Tests for VaultConfig.from_env()."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in (
            "VAULT_ENCRYPTION_KEY", "VAULT_KEY_SALT", "VAULT_ENVIRONMENT",
            "VAULT_SCRYPT_N", "VAULT_SCRYPT_R", "VAULT_SCRYPT_P",
            "VAULT_HIDE_FOREIGN_ITEMS",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_production_with_key(self, monkeypatch):
        monkeypatch.setenv("VAULT_ENCRYPTION_KEY", HEX_KEY)
        monkeypatch.setenv("VAULT_ENVIRONMENT", "Production")
        monkeypatch.setenv("VAULT_SCRYPT_N", "1024")
        monkeypatch.setenv("VAULT_HIDE_FOREIGN_ITEMS", "true")
        config = VaultConfig.from_env()
        assert config.master_secret == bytes.fromhex(HEX_KEY)
        assert config.is_production is True
        assert config.scrypt_n == 1024
        assert config.hide_foreign_items is True

    def test_production_without_key(self, monkeypatch):
        monkeypatch.setenv("VAULT_ENVIRONMENT", "production")
        with pytest.raises(ConfigFault):
            VaultConfig.from_env()

    def test_development_without_key(self):
        config = VaultConfig.from_env()
        assert config.environment == "development"
        assert len(config.master_secret) == 32
