#!/usr/bin/env python3
"""
Encrypt a store credential with the configured ENCRYPTION_KEY.
Usage: python scripts/encrypt_secret.py <value>

Useful when loading stores directly into the database.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from warehouse_sync.auth import CredentialCipher, CredentialError
from warehouse_sync.config import settings


def main():
    if len(sys.argv) != 2:
        print("Usage: python scripts/encrypt_secret.py <value>")
        sys.exit(1)

    cipher = CredentialCipher(settings.encryption_key, settings.encryption_salt)
    try:
        encrypted = cipher.encrypt(sys.argv[1])
    except CredentialError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print("\nStore this value in the credential column:\n")
    print(encrypted)
    print()


if __name__ == "__main__":
    main()
