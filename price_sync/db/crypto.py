"""
AES-256-GCM encryption of store credentials at rest.
"""

import json
import os
import re
from typing import Any, Dict, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import ConfigurationError, CredentialError

KEY_BYTES = 32
NONCE_BYTES = 12

_HEX = re.compile(r"^[0-9a-fA-F]+$")


def generate_encryption_key() -> str:
    """New random key as 64 hex characters."""
    return AESGCM.generate_key(bit_length=KEY_BYTES * 8).hex()


def validate_encryption_key(key: str) -> bytes:
    """
    Check a hex key and return its raw bytes.

    Raises:
        ConfigurationError: Missing, wrong length or not hexadecimal
    """
    if not key:
        raise ConfigurationError("ENCRYPTION_KEY is required to store credentials")
    if len(key) != KEY_BYTES * 2:
        raise ConfigurationError(
            f"ENCRYPTION_KEY must be {KEY_BYTES * 2} hex characters ({KEY_BYTES} bytes)"
        )
    if not _HEX.match(key):
        raise ConfigurationError("ENCRYPTION_KEY must be a hexadecimal string")
    return bytes.fromhex(key)


class CredentialCipher:
    """
    Encrypts credential dicts as JSON.

    The stored ciphertext carries the GCM tag as its last 16 bytes; the nonce
    is stored separately. Both are hex encoded.
    """

    def __init__(self, key: str):
        self._aead = AESGCM(validate_encryption_key(key))

    def encrypt(self, credentials: Dict[str, Any]) -> Tuple[str, str]:
        """Return (ciphertext, nonce) for storage."""
        nonce = os.urandom(NONCE_BYTES)
        plaintext = json.dumps(credentials).encode("utf-8")
        return self._aead.encrypt(nonce, plaintext, None).hex(), nonce.hex()

    def decrypt(self, encrypted: str, iv: str) -> Dict[str, Any]:
        """
        Recover stored credentials.

        Raises:
            CredentialError: Wrong key, tampered data or malformed values
        """
        try:
            plaintext = self._aead.decrypt(bytes.fromhex(iv), bytes.fromhex(encrypted), None)
        except InvalidTag as e:
            raise CredentialError(
                "Stored credentials could not be decrypted; check ENCRYPTION_KEY"
            ) from e
        except ValueError as e:
            raise CredentialError(f"Stored credentials are malformed: {e}") from e
        return json.loads(plaintext)
