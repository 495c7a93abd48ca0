"""
Encryption of store credentials at rest.

Values are stored as ``iv_hex:ciphertext_hex:tag_hex`` (AES-256-GCM, 16 byte IV).
A value without colons is a legacy plaintext credential and is returned as-is.
"""

import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt


IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32


class CredentialError(Exception):
    """A credential could not be encrypted or decrypted."""
    pass


def derive_key(secret: str, salt: str) -> bytes:
    """Derive the 32 byte AES key from the root secret (scrypt, N=16384, r=8, p=1)."""
    if not secret:
        raise CredentialError("Encryption key is not configured")
    kdf = Scrypt(salt=salt.encode("utf-8"), length=KEY_LENGTH, n=2 ** 14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


def is_encrypted(value: Optional[str]) -> bool:
    """Check if a stored value uses the encrypted format."""
    return bool(value) and ":" in value


class CredentialCipher:
    """
    Encrypts and decrypts credential strings.

    The key is derived lazily on first use, so a service without an
    encryption key configured can still read legacy plaintext values.
    """

    def __init__(self, secret: str, salt: str):
        self._secret = secret
        self._salt = salt
        self._key: Optional[bytes] = None

    def _get_key(self) -> bytes:
        if self._key is None:
            self._key = derive_key(self._secret, self._salt)
        return self._key

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        """Encrypt a plaintext string. Empty values are returned unchanged."""
        if not plaintext:
            return plaintext

        iv = os.urandom(IV_LENGTH)
        sealed = AESGCM(self._get_key()).encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{ciphertext.hex()}:{tag.hex()}"

    def decrypt(self, stored: Optional[str]) -> Optional[str]:
        """Decrypt a stored value; legacy plaintext passes through."""
        if not stored:
            return stored
        if not is_encrypted(stored):
            return stored

        parts = stored.split(":")
        if len(parts) != 3:
            raise CredentialError("Malformed encrypted credential")

        try:
            iv = bytes.fromhex(parts[0])
            ciphertext = bytes.fromhex(parts[1])
            tag = bytes.fromhex(parts[2])
        except ValueError as e:
            raise CredentialError("Malformed encrypted credential") from e

        try:
            plaintext = AESGCM(self._get_key()).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise CredentialError("Credential failed authentication") from e

        return plaintext.decode("utf-8")
