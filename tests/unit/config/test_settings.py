"""Tests for runtime settings validation."""

import pytest
from cryptography.fernet import Fernet
from pydantic import SecretStr, ValidationError

from firmsync.config import Settings
from firmsync.core.constants import DEFAULT_INSECURE_SECRET


SECURE_SECRET = "s" * 48


class TestSecretKey:
    def test_short_key_rejected(self):
        with pytest.raises(ValidationError, match="at least"):
            Settings(secret_key="too-short")

    def test_placeholder_allowed_outside_production(self):
        assert Settings(secret_key=DEFAULT_INSECURE_SECRET).is_development


class TestProduction:
    def test_placeholder_secret_refused(self):
        with pytest.raises(ValidationError, match="SECRET_KEY"):
            Settings(
                environment="production",
                connection_encryption_key=SecretStr(Fernet.generate_key().decode()),
            )

    def test_encryption_key_required(self):
        with pytest.raises(ValidationError, match="CONNECTION_ENCRYPTION_KEY"):
            Settings(environment="production", secret_key=SECURE_SECRET)

    def test_valid_production_settings(self):
        settings = Settings(
            environment="production",
            secret_key=SECURE_SECRET,
            connection_encryption_key=SecretStr(Fernet.generate_key().decode()),
        )

        assert settings.is_production
        assert not settings.is_development


class TestEncryptionKey:
    def test_malformed_key_rejected(self):
        with pytest.raises(ValidationError, match="Fernet"):
            Settings(connection_encryption_key=SecretStr("not-a-key"))

    def test_key_is_masked(self):
        key = Fernet.generate_key().decode()
        settings = Settings(connection_encryption_key=SecretStr(key))

        assert key not in repr(settings)


def test_async_central_url_uses_asyncpg():
    settings = Settings(central_database_url="postgresql://u:p@db:5432/central")

    assert settings.async_central_database_url == "postgresql+asyncpg://u:p@db:5432/central"


def test_unknown_environment_rejected():
    with pytest.raises(ValidationError):
        Settings(environment="qa")
