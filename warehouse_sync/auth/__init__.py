"""
Authentication module.
"""

from warehouse_sync.auth.crypto import CredentialCipher, CredentialError, is_encrypted
from warehouse_sync.auth.session import SessionManager, SESSION_COOKIE_NAME

__all__ = [
    "CredentialCipher",
    "CredentialError",
    "is_encrypted",
    "SessionManager",
    "SESSION_COOKIE_NAME",
]
