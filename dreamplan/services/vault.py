# =============================================================================
# Credential Vault — Symmetric Encryption of Provider Secrets at Rest
# =============================================================================
#
# Provider API keys are stored in `agent_api_keys.encrypted_value` as a
# self-describing token:
#
#     <iv hex>:<auth tag hex>:<ciphertext hex>
#
# - Cipher: AES-256-GCM (authenticated; a flipped bit fails the tag check)
# - IV: 12 random bytes per encryption
# - Key: scrypt(secret, fixed salt), derived lazily once per Vault instance
#
# Decrypt failures are deliberately uniform: a malformed token, bad hex, a
# wrong key and a tag mismatch all raise the same VaultError message.
#
# The vault has no knowledge of agents. The AgentManager decides what to do
# when a single credential fails to decrypt (skip it, keep loading).
# =============================================================================

from __future__ import annotations

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from dreamplan.config import settings

logger = logging.getLogger(__name__)

_DELIMITER = ":"
_IV_BYTES = 12
_TAG_BYTES = 16
_KEY_BYTES = 32

# scrypt cost parameters (n=2^14, r=8, p=1 is the common interactive profile)
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1


class VaultError(Exception):
    """Raised when the vault cannot encrypt or decrypt a credential."""


class CredentialVault:
    """
    AES-256-GCM encrypt/decrypt service for provider credentials.

    Args:
        secret: Key material. Defaults to settings.credential_encryption_key.
        salt: Fixed KDF salt. Defaults to settings.credential_salt.
    """

    def __init__(self, secret: str | None = None, salt: str | None = None) -> None:
        self._secret = secret if secret is not None else settings.credential_encryption_key
        self._salt = salt if salt is not None else settings.credential_salt
        self._key: bytes | None = None

    def _derive_key(self) -> bytes:
        if self._key is None:
            if not self._secret:
                raise VaultError(
                    "No credential encryption key configured. "
                    "Set CREDENTIAL_ENCRYPTION_KEY in .env"
                )
            kdf = Scrypt(
                salt=self._salt.encode(),
                length=_KEY_BYTES,
                n=_SCRYPT_N,
                r=_SCRYPT_R,
                p=_SCRYPT_P,
            )
            self._key = kdf.derive(self._secret.encode())
            logger.debug("Derived credential vault key")
        return self._key

    def encrypt(self, plaintext: str | bytes) -> str:
        """Encrypt a secret and return the `iv:tag:ciphertext` token."""
        data = plaintext.encode() if isinstance(plaintext, str) else plaintext
        iv = os.urandom(_IV_BYTES)

        # AESGCM appends the 16-byte tag to the ciphertext
        sealed = AESGCM(self._derive_key()).encrypt(iv, data, None)
        ciphertext, tag = sealed[:-_TAG_BYTES], sealed[-_TAG_BYTES:]

        return _DELIMITER.join((iv.hex(), tag.hex(), ciphertext.hex()))

    def decrypt_bytes(self, token: str) -> bytes:
        """Decrypt a token produced by encrypt() back to raw bytes."""
        key = self._derive_key()
        try:
            iv_hex, tag_hex, ciphertext_hex = token.split(_DELIMITER)
            iv = bytes.fromhex(iv_hex)
            tag = bytes.fromhex(tag_hex)
            ciphertext = bytes.fromhex(ciphertext_hex)
            if len(iv) != _IV_BYTES or len(tag) != _TAG_BYTES:
                raise ValueError("bad token layout")
            return AESGCM(key).decrypt(iv, ciphertext + tag, None)
        except (InvalidTag, ValueError, AttributeError):
            raise VaultError("Failed to decrypt credential") from None

    def decrypt(self, token: str) -> str:
        """Decrypt a token to a UTF-8 string."""
        data = self.decrypt_bytes(token)
        try:
            return data.decode()
        except UnicodeDecodeError:
            raise VaultError("Failed to decrypt credential") from None
