"""
Tests for CredentialCipher and the stored-credential variant.
"""

import json

import pytest
from cryptography.fernet import Fernet

from connectors.encryption import CredentialCipher
from connectors.errors import DecryptionFailed
from connectors.models import (
    Automation,
    EncryptedCredentials,
    LegacyCredentials,
    stored_credentials_from_row,
)


class TestCredentialCipher:
    def test_ciphertext_hides_token(self, cipher):
        blob = cipher.encrypt({"access_token": "secret-token"})
        assert "secret-token" not in blob
        assert cipher.decrypt(blob) == {"access_token": "secret-token"}

    def test_missing_key_rejected(self):
        with pytest.raises(ValueError, match="TOKEN_ENCRYPTION_KEY"):
            CredentialCipher("")

    def test_wrong_key(self, cipher):
        blob = CredentialCipher(Fernet.generate_key()).encrypt({"access_token": "x"})
        with pytest.raises(DecryptionFailed):
            cipher.decrypt(blob)

    def test_garbage_blob(self, cipher):
        with pytest.raises(DecryptionFailed):
            cipher.decrypt("definitely-not-fernet")


class TestStoredCredentialsVariant:
    def test_encrypted_flag_selects_encrypted(self):
        row = Automation(credentials="blob", security_metadata={"encrypted": True})
        assert isinstance(stored_credentials_from_row(row), EncryptedCredentials)

    @pytest.mark.parametrize("metadata", [None, {}, {"encrypted": False}])
    def test_legacy_rows(self, metadata):
        row = Automation(credentials=json.dumps({"access_token": "x"}), security_metadata=metadata)
        stored = stored_credentials_from_row(row)
        assert isinstance(stored, LegacyCredentials)
        assert stored.reveal() == {"access_token": "x"}

    def test_cleared_row_has_no_credentials(self):
        assert stored_credentials_from_row(Automation(credentials=None, security_metadata={"revoked": True})) is None

    def test_legacy_non_object_json(self):
        with pytest.raises(DecryptionFailed):
            LegacyCredentials(payload="[1, 2]").reveal()
