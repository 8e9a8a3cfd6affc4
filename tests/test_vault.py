# =============================================================================
# Unit Tests — Credential Vault
# =============================================================================

from __future__ import annotations

import pytest

from dreamplan.services.vault import CredentialVault, VaultError


class TestEncryptDecrypt:
    def test_decrypt_returns_original_secret(self, vault):
        token = vault.encrypt("amadeus-id:amadeus-secret")
        assert vault.decrypt(token) == "amadeus-id:amadeus-secret"

    def test_token_has_three_hex_parts(self, vault):
        iv, tag, ciphertext = vault.encrypt("abc").split(":")
        assert len(bytes.fromhex(iv)) == 12
        assert len(bytes.fromhex(tag)) == 16
        assert len(bytes.fromhex(ciphertext)) == 3

    def test_fresh_iv_per_encryption(self, vault):
        assert vault.encrypt("same") != vault.encrypt("same")

    def test_bytes_round_trip(self, vault):
        assert vault.decrypt_bytes(vault.encrypt(b"\x00\x01")) == b"\x00\x01"


class TestDecryptFailures:
    @pytest.mark.parametrize("token", [
        "not-a-token",
        "zz:zz:zz",
        "00:00:00",
        "a:b",
        "",
    ])
    def test_malformed_tokens_raise_vault_error(self, vault, token):
        with pytest.raises(VaultError, match="Failed to decrypt credential"):
            vault.decrypt(token)

    def test_tampered_ciphertext_fails_tag_check(self, vault):
        iv, tag, ciphertext = vault.encrypt("secret").split(":")
        flipped = format(int(ciphertext[:2], 16) ^ 0x01, "02x") + ciphertext[2:]
        with pytest.raises(VaultError):
            vault.decrypt(f"{iv}:{tag}:{flipped}")

    def test_wrong_key_fails(self, vault):
        token = vault.encrypt("secret")
        other = CredentialVault(secret="a-different-secret")
        with pytest.raises(VaultError):
            other.decrypt(token)

    def test_missing_secret_refuses_to_encrypt(self):
        with pytest.raises(VaultError, match="No credential encryption key"):
            CredentialVault(secret="").encrypt("x")


class TestPayloadSizes:
    @pytest.mark.parametrize("payload", [b"", b"x" * 8192, bytes(range(256))])
    def test_arbitrary_bytes(self, vault, payload):
        assert vault.decrypt_bytes(vault.encrypt(payload)) == payload

    def test_flipped_tag_bit_fails(self, vault):
        iv, tag, ciphertext = vault.encrypt("secret").split(":")
        flipped = tag[:-1] + format(int(tag[-1], 16) ^ 0x1, "x")
        with pytest.raises(VaultError):
            vault.decrypt(f"{iv}:{flipped}:{ciphertext}")
