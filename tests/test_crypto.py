"""
Tests for credential encryption.
"""

import pytest

from warehouse_sync.auth import CredentialCipher, CredentialError, is_encrypted


class TestCredentialCipher:

    def test_encrypted_format(self, cipher):
        encrypted = cipher.encrypt("cs_secret_value")
        iv, ciphertext, tag = encrypted.split(":")

        assert len(bytes.fromhex(iv)) == 16
        assert len(bytes.fromhex(tag)) == 16
        assert len(bytes.fromhex(ciphertext)) == len("cs_secret_value")
        assert "cs_secret_value" not in encrypted

    def test_decrypt(self, cipher):
        assert cipher.decrypt(cipher.encrypt("ck_abc123")) == "ck_abc123"

    def test_fresh_iv_per_encryption(self, cipher):
        assert cipher.encrypt("same") != cipher.encrypt("same")

    def test_legacy_plaintext_passes_through(self, cipher):
        assert cipher.decrypt("ck_legacy_plaintext") == "ck_legacy_plaintext"
        assert not is_encrypted("ck_legacy_plaintext")

    def test_empty_values(self, cipher):
        assert cipher.encrypt("") == ""
        assert cipher.decrypt(None) is None

    def test_tampered_ciphertext_rejected(self, cipher):
        iv, ciphertext, tag = cipher.encrypt("secret").split(":")
        flipped = format(int(ciphertext[:2], 16) ^ 0xFF, "02x") + ciphertext[2:]

        with pytest.raises(CredentialError):
            cipher.decrypt(f"{iv}:{flipped}:{tag}")

    def test_wrong_key_rejected(self, cipher):
        encrypted = cipher.encrypt("secret")
        other = CredentialCipher("another-root-secret", "test-salt")

        with pytest.raises(CredentialError):
            other.decrypt(encrypted)

    def test_malformed_value(self, cipher):
        with pytest.raises(CredentialError):
            cipher.decrypt("zz:yy")

    def test_missing_key_only_matters_for_encrypted_values(self):
        cipher = CredentialCipher("", "test-salt")
        assert cipher.decrypt("plain") == "plain"
        with pytest.raises(CredentialError):
            cipher.encrypt("secret")
