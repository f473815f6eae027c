"""Reversible encryption for router credentials.

Tokens have the form ``<nonce hex>:<ciphertext hex>``. Each call to
:meth:`CredentialCipher.encrypt` draws a fresh 16-byte nonce, so encrypting
the same password twice yields different tokens. AES-256-GCM authenticates
the payload: a wrong key or a corrupted token raises
:class:`CredentialDecryptError` instead of returning garbage.
"""

from __future__ import annotations

import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from hotspot_reset.core.config import ConfigError

KEY_LENGTH = 32
NONCE_LENGTH = 16
TOKEN_SEPARATOR = ":"


class CredentialCipherError(ValueError):
    """Base exception for credential encryption errors."""


class CredentialFormatError(CredentialCipherError):
    """Raised when a token does not have the ``nonce:payload`` structure."""


class CredentialDecryptError(CredentialCipherError):
    """Raised when a token cannot be decrypted with the configured key."""


def _key_bytes(key: str | bytes) -> bytes:
    if isinstance(key, str):
        raw = key.encode("utf-8")
        if len(raw) == KEY_LENGTH * 2:
            try:
                return bytes.fromhex(key)
            except ValueError:
                pass
    else:
        raw = bytes(key)

    if len(raw) != KEY_LENGTH:
        raise ConfigError(
            f"Encryption key must be exactly {KEY_LENGTH} bytes (or {KEY_LENGTH * 2} hex characters). "
            f"Current length: {len(raw)}"
        )
    return raw


def generate_key() -> str:
    """Return a new random key as a hex string."""

    return os.urandom(KEY_LENGTH).hex()


class CredentialCipher:
    """Encrypt and decrypt credential strings with a fixed key."""

    def __init__(self, key: str | bytes) -> None:
        self._aead = AESGCM(_key_bytes(key))

    def __repr__(self) -> str:
        return "CredentialCipher(key='***')"

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_LENGTH)
        payload = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return f"{nonce.hex()}{TOKEN_SEPARATOR}{payload.hex()}"

    def decrypt(self, token: str) -> str:
        if not isinstance(token, str):
            raise CredentialFormatError("Invalid encrypted data format")

        parts = token.split(TOKEN_SEPARATOR)
        if len(parts) != 2 or not all(parts):
            raise CredentialFormatError("Invalid encrypted data format")

        try:
            nonce = binascii.unhexlify(parts[0])
            payload = binascii.unhexlify(parts[1])
        except (binascii.Error, ValueError) as exc:
            raise CredentialFormatError("Invalid encrypted data format") from exc

        if len(nonce) != NONCE_LENGTH:
            raise CredentialFormatError("Invalid encrypted data format")

        try:
            plaintext = self._aead.decrypt(nonce, payload, None)
        except InvalidTag as exc:
            raise CredentialDecryptError("Unable to decrypt credential with the configured key") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:  # pragma: no cover - authenticated payload
            raise CredentialDecryptError("Decrypted credential is not valid UTF-8") from exc

