"""Access-token encryption at rest.

Merchant access tokens are stored Fernet-encrypted in merchant and order
documents and only decrypted right before a Shopify call.
"""

import structlog
from cryptography.fernet import Fernet, InvalidToken

from podbridge.infrastructure.config import settings

logger = structlog.get_logger()


class TokenDecryptionError(Exception):
    """Raised when a stored token cannot be decrypted."""


class TokenCipher:
    """Symmetric cipher for merchant access tokens."""

    def __init__(self, key: str | None = None) -> None:
        self._fernet = Fernet((key or settings.token_encryption_key).encode())

    def encrypt(self, token: str) -> str:
        """Encrypt a plaintext token."""
        return self._fernet.encrypt(token.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a stored token.

        Raises:
            TokenDecryptionError: If the ciphertext is malformed or was
                encrypted with another key.
        """
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except (InvalidToken, ValueError) as e:
            logger.error("Failed to decrypt access token")
            raise TokenDecryptionError("Access token could not be decrypted") from e


_cipher: TokenCipher | None = None


def get_token_cipher() -> TokenCipher:
    """Get the token cipher singleton."""
    global _cipher
    if _cipher is None:
        _cipher = TokenCipher()
    return _cipher
