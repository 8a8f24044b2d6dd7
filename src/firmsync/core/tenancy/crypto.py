"""Encryption of tenant connection strings at rest."""

from cryptography.fernet import Fernet, InvalidToken


class ConnectionStringDecryptError(Exception):
    """Raised when a stored connection string cannot be decrypted."""


class ConnectionStringCipher:
    """Fernet wrapper for tenant DSNs.

    Args:
        key: URL-safe base64 Fernet key

    Example:
        cipher = ConnectionStringCipher(ConnectionStringCipher.generate_key())
        token = cipher.encrypt("postgresql://user:pw@host/db")
    """

    def __init__(self, key: str | bytes) -> None:
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    def encrypt(self, connection_string: str) -> str:
        return self._fernet.encrypt(connection_string.encode()).decode()

    def decrypt(self, token: str) -> str:
        """Decrypt a stored connection string.

        Raises:
            ConnectionStringDecryptError: If the token is corrupt or was
                encrypted with another key
        """
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken as e:
            raise ConnectionStringDecryptError(
                "Failed to decrypt tenant connection string"
            ) from e
