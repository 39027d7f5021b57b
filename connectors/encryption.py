"""
Credential encryption — encrypt / decrypt OAuth credentials at rest.

Uses Fernet (AES-128-CBC + HMAC-SHA256) from the ``cryptography`` library.
The key is loaded from ``config.token_encryption_key``
(env var: ``TOKEN_ENCRYPTION_KEY``). Generate one with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Union

from cryptography.fernet import Fernet, InvalidToken

from connectors.errors import DecryptionFailed

logger = logging.getLogger(__name__)


class CredentialCipher:
    """Serializes a credentials dict to JSON and seals it with Fernet."""

    def __init__(self, key: Union[str, bytes]) -> None:
        if not key:
            raise ValueError(
                "TOKEN_ENCRYPTION_KEY not set. Generate a key: "
                "python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
            )
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    @classmethod
    def from_settings(cls, settings) -> "CredentialCipher":
        cipher = cls(settings.token_encryption_key)
        logger.info("Credential encryption enabled (Fernet/AES-128-CBC)")
        return cipher

    def encrypt(self, credentials: Dict[str, Any]) -> str:
        """Return the Fernet ciphertext (URL-safe base64) of the JSON credentials."""
        plaintext = json.dumps(credentials, separators=(",", ":"))
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, blob: str) -> Dict[str, Any]:
        """Inverse of :meth:`encrypt`. Raises ``DecryptionFailed`` on any failure."""
        try:
            plaintext = self._fernet.decrypt(blob.encode())
            data = json.loads(plaintext)
        except (InvalidToken, ValueError, TypeError, AttributeError) as exc:
            raise DecryptionFailed("Failed to decrypt credentials") from exc
        if not isinstance(data, dict):
            raise DecryptionFailed("Decrypted credentials are not a JSON object")
        return data
