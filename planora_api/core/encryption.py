"""Encryption of the pending signup credential.

A signup's password has to survive until the verification code is
redeemed, so it is held in ``verification_codes.metadata`` as a Fernet
token (AES-128-CBC with HMAC) instead of cleartext. The Fernet key is
derived with PBKDF2 from ENCRYPTION_KEY, falling back to SECRET_KEY.
"""

import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from planora_api.config import settings

_PBKDF2_ITERATIONS = 600_000
# Static salt; changing it invalidates every code still in flight.
_PBKDF2_SALT = b"planora-pending-credential-v1"


class CredentialDecryptionError(ValueError):
    """The stored token cannot be decrypted with the configured key."""


@lru_cache(maxsize=4)
def _derive_key(raw_key: str) -> bytes:
    key_bytes = hashlib.pbkdf2_hmac(
        "sha256",
        raw_key.encode("utf-8"),
        _PBKDF2_SALT,
        _PBKDF2_ITERATIONS,
    )
    return base64.urlsafe_b64encode(key_bytes)


def _fernet() -> Fernet:
    raw_key = settings.encryption_key or settings.secret_key
    return Fernet(_derive_key(raw_key))


def encrypt_credential(plaintext: str) -> str:
    """Encrypt a credential and return the token as text."""
    return _fernet().encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt_credential(token: str) -> str:
    """Decrypt a token produced by :func:`encrypt_credential`.

    Raises:
        CredentialDecryptionError: If the key changed or the token is corrupt.
    """
    try:
        return _fernet().decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        raise CredentialDecryptionError(
            "Failed to decrypt credential - invalid key or corrupted data"
        ) from e
