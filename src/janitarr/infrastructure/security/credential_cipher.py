"""AES-256-GCM encryption for server API keys stored in the database.

Envelope format: "IV_BASE64:CIPHERTEXT_BASE64" (ciphertext includes the GCM tag).
The 32-byte key lives in a file next to the database and is generated on first use.
"""

import base64
import binascii
import logging
import os
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from janitarr.domain.exceptions import ConfigurationError, CredentialDecryptionError
from janitarr.domain.ports import ICredentialCipher

logger = logging.getLogger(__name__)

KEY_SIZE = 32
IV_LENGTH = 12


def generate_key() -> bytes:
    """Generate a new random AES-256 key."""
    return AESGCM.generate_key(bit_length=KEY_SIZE * 8)


# Hey future me, losing this file means every stored API key becomes undecryptable - the
# operator has to re-enter them. Keep it with the database volume. We write it 0600 and
# refuse to start with a key file of the wrong size rather than silently regenerating one.
def load_or_create_key(path: Path) -> bytes:
    """Load the key file, creating it with a fresh key if it doesn't exist.

    Args:
        path: Location of the key file

    Returns:
        The 32-byte key

    Raises:
        ConfigurationError: If the key file exists but has the wrong size
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        key = path.read_bytes()
        if len(key) != KEY_SIZE:
            raise ConfigurationError(
                f"Invalid key file '{path}': expected {KEY_SIZE} bytes, got {len(key)}"
            )
        return key

    key = generate_key()
    path.write_bytes(key)
    os.chmod(path, 0o600)
    logger.info("Generated new credential encryption key at %s", path)
    return key


class CredentialCipher(ICredentialCipher):
    """Encrypts and decrypts credentials with one process-lifetime key."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ConfigurationError(f"Encryption key must be {KEY_SIZE} bytes")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_key_file(cls, path: Path) -> "CredentialCipher":
        return cls(load_or_create_key(path))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext into an "iv:ciphertext" envelope."""
        iv = os.urandom(IV_LENGTH)
        ciphertext = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        return (
            f"{base64.b64encode(iv).decode('ascii')}:"
            f"{base64.b64encode(ciphertext).decode('ascii')}"
        )

    def decrypt(self, envelope: str) -> str:
        """Decrypt an envelope produced by encrypt().

        Raises:
            CredentialDecryptionError: Malformed envelope, wrong key or tampered data
        """
        iv_b64, sep, ciphertext_b64 = envelope.partition(":")
        if not sep or not iv_b64 or not ciphertext_b64:
            raise CredentialDecryptionError("Invalid credential envelope format")

        try:
            iv = base64.b64decode(iv_b64, validate=True)
            ciphertext = base64.b64decode(ciphertext_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CredentialDecryptionError("Credential envelope is not valid base64") from e

        if len(iv) != IV_LENGTH:
            raise CredentialDecryptionError("Invalid credential envelope IV length")

        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext, None)
        except InvalidTag as e:
            raise CredentialDecryptionError(
                "Credential decryption failed (wrong key or corrupted data)"
            ) from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CredentialDecryptionError("Decrypted credential is not valid UTF-8") from e
