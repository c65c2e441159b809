"""Credential encryption."""

from janitarr.infrastructure.security.credential_cipher import (
    CredentialCipher,
    generate_key,
    load_or_create_key,
)

__all__ = ["CredentialCipher", "generate_key", "load_or_create_key"]
