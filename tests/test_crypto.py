"""
Tests for the vault crypto core.

Tests cover:
- Base64 codec helpers
- Salt generation
- Key derivation and the non-extractable DerivedKey
- Single-value encrypt/decrypt, tamper and wrong-password detection
"""
import copy
import base64
import pickle
import binascii

import pytest
from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm

from vault_envelope.vault import crypto
from vault_envelope.vault.crypto import (
    CryptoProvider,
    DerivedKey,
    b64encode,
    b64decode,
    derive_key,
    generate_salt,
    encrypt,
    decrypt,
)

from .conftest import FAST_ITERATIONS


async def fast_key(password: str, salt: str) -> DerivedKey:
    return await derive_key(password, salt, iterations=FAST_ITERATIONS)


def flip_bit(encoded: str, index: int) -> str:
    """Flip the lowest bit of one decoded byte and re-encode."""
    raw = bytearray(base64.b64decode(encoded))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


# --- Base64 codec ---

class TestCodec:
    """Tests for the base64 helpers."""

    def test_encode_uses_standard_alphabet_with_padding(self):
        """Test output keeps '+', '/' and '=' padding."""
        assert b64encode(b"\xfb\xff") == "+/8="

    def test_decode_is_byte_exact(self):
        """Test decoding restores every byte value."""
        data = bytes(range(256))
        assert b64decode(b64encode(data)) == data

    def test_decode_rejects_non_alphabet(self):
        """Test strict decoding refuses URL-safe or junk characters."""
        with pytest.raises(binascii.Error):
            b64decode("-_8=")
        with pytest.raises(binascii.Error):
            b64decode("not base64!")


# --- Salt ---

class TestSalt:

    def test_salt_is_16_bytes(self):
        """Test a salt decodes to 16 bytes."""
        assert len(b64decode(generate_salt())) == 16

    def test_salts_are_random(self):
        """Test two salts differ."""
        assert generate_salt() != generate_salt()

    def test_custom_size(self):
        """Test the salt size can be changed."""
        assert len(b64decode(generate_salt(size=32))) == 32


# --- Provider ---

class BrokenProvider(CryptoProvider):
    """Provider whose AEAD backend is missing."""

    def aead(self, key):
        raise UnsupportedAlgorithm("AES-GCM not supported")


class TestProvider:

    def test_default_provider_is_available(self):
        """Test the cryptography backend passes the capability check."""
        assert CryptoProvider().is_available() is True

    def test_broken_provider_is_unavailable(self):
        """Test a provider without AES-GCM fails the capability check."""
        assert BrokenProvider().is_available() is False

    def test_sha256(self):
        """Test sha256 matches the known digest of the empty string."""
        digest = CryptoProvider().sha256(b"")
        assert digest.hex() == (
            "e3b0c44298fc1c149afbf4c8996fb924"
            "27ae41e4649b934ca495991b7852b855"
        )


# --- Derived key ---

class TestDerivedKey:
    """Tests for the non-extractable key wrapper."""

    @pytest.mark.asyncio
    async def test_key_properties(self):
        """Test a derived key reports algorithm, size and usages."""
        key = await fast_key("correct horse", generate_salt())
        assert key.algorithm == "AES-GCM"
        assert key.length == 256
        assert key.usages == frozenset({"encrypt", "decrypt"})
        assert key.extractable is False
        assert key.wiped is False

    @pytest.mark.asyncio
    async def test_export_refused(self):
        """Test raw key bytes cannot be exported."""
        key = await fast_key("correct horse", generate_salt())
        with pytest.raises(TypeError):
            key.export()

    @pytest.mark.asyncio
    async def test_pickle_refused(self):
        """Test a derived key cannot be pickled."""
        key = await fast_key("correct horse", generate_salt())
        with pytest.raises(TypeError):
            pickle.dumps(key)

    @pytest.mark.asyncio
    async def test_copy_refused(self):
        """Test a derived key cannot be copied."""
        key = await fast_key("correct horse", generate_salt())
        with pytest.raises(TypeError):
            copy.copy(key)
        with pytest.raises(TypeError):
            copy.deepcopy(key)

    def test_repr_hides_material(self):
        """Test repr never shows the key bytes."""
        material = bytes(range(32))
        key = DerivedKey(material, CryptoProvider())
        text = repr(key)
        assert "AES-GCM-256" in text
        assert material.hex() not in text
        assert b64encode(material) not in text

    def test_context_manager_wipes(self):
        """Test leaving the context zeroes the key."""
        key = DerivedKey(b"\x01" * 32, CryptoProvider())
        with key as scoped:
            assert scoped is key
        assert key.wiped is True
        assert key._material == bytearray(32)
        assert "wiped" in repr(key)

    @pytest.mark.asyncio
    async def test_async_context_manager_wipes(self):
        """Test leaving the async context zeroes the key."""
        key = DerivedKey(b"\x01" * 32, CryptoProvider())
        async with key:
            pass
        assert key.wiped is True

    @pytest.mark.asyncio
    async def test_wiped_key_cannot_be_used(self):
        """Test a wiped key refuses to encrypt or decrypt."""
        key = await fast_key("correct horse", generate_salt())
        payload = await encrypt("secret", key)
        key.wipe()
        with pytest.raises(RuntimeError):
            await encrypt("secret", key)
        with pytest.raises(RuntimeError):
            await decrypt(payload.encrypted, payload.iv, key)

    def test_usage_restriction(self):
        """Test a decrypt-only key refuses to encrypt."""
        key = DerivedKey(b"\x01" * 32, CryptoProvider(), usages={"decrypt"})
        with pytest.raises(ValueError):
            key.seal(b"\x00" * 12, b"data")

    @pytest.mark.asyncio
    async def test_malformed_salt_raises(self):
        """Test a malformed salt raises the decoder error."""
        with pytest.raises(binascii.Error):
            await fast_key("correct horse", "***")


# --- Encrypt / decrypt ---

class TestEnvelopeCrypto:
    """Tests for AES-GCM envelope encryption."""

    @pytest.mark.asyncio
    async def test_round_trip(self):
        """Test a re-derived key decrypts what the first one encrypted."""
        salt = generate_salt()
        key = await fast_key("correct horse", salt)
        payload = await encrypt("hola-mundo", key)
        # a freshly derived key from the same inputs must decrypt
        again = await fast_key("correct horse", salt)
        assert await decrypt(payload.encrypted, payload.iv, again) == "hola-mundo"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("plaintext", [
        "",
        "ascii only",
        "ñandú — 日本語 — emoji 🔐",
        "x" * 10_000,
    ])
    async def test_round_trip_utf8(self, plaintext):
        """Test UTF-8 strings of any size survive encryption."""
        key = await fast_key("correct horse", generate_salt())
        payload = await encrypt(plaintext, key)
        assert await decrypt(payload.encrypted, payload.iv, key) == plaintext

    @pytest.mark.asyncio
    async def test_payload_layout(self):
        """Test IV is 12 bytes and ciphertext carries a 16-byte tag."""
        key = await fast_key("correct horse", generate_salt())
        payload = await encrypt("abc", key)
        assert len(b64decode(payload.iv)) == crypto.NONCE_SIZE
        assert len(b64decode(payload.encrypted)) == 3 + crypto.TAG_SIZE

    @pytest.mark.asyncio
    async def test_fresh_iv_per_encryption(self):
        """Test two encryptions of one plaintext never match."""
        key = await fast_key("correct horse", generate_salt())
        first = await encrypt("same plaintext", key)
        second = await encrypt("same plaintext", key)
        assert first.iv != second.iv
        assert first.encrypted != second.encrypted

    @pytest.mark.asyncio
    async def test_wrong_password_fails_closed(self):
        """Test a key from the wrong password raises InvalidTag."""
        salt = generate_salt()
        key = await fast_key("correct horse", salt)
        payload = await encrypt("secret", key)
        wrong = await fast_key("battery staple", salt)
        with pytest.raises(InvalidTag):
            await decrypt(payload.encrypted, payload.iv, wrong)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", [0, 5, -1])
    async def test_tampered_ciphertext_detected(self, index):
        """Test flipping one bit in the body or the tag fails decryption."""
        key = await fast_key("correct horse", generate_salt())
        payload = await encrypt("secret value", key)
        with pytest.raises(InvalidTag):
            await decrypt(flip_bit(payload.encrypted, index), payload.iv, key)

    @pytest.mark.asyncio
    async def test_mismatched_iv_detected(self):
        """Test decrypting with another IV fails."""
        key = await fast_key("correct horse", generate_salt())
        payload = await encrypt("secret value", key)
        with pytest.raises(InvalidTag):
            await decrypt(payload.encrypted, flip_bit(payload.iv, 0), key)

    @pytest.mark.asyncio
    async def test_different_salts_are_not_interchangeable(self):
        """Test keys from different salts cannot decrypt each other."""
        key_a = await fast_key("correct horse", generate_salt())
        key_b = await fast_key("correct horse", generate_salt())
        payload = await encrypt("secret", key_a)
        with pytest.raises(InvalidTag):
            await decrypt(payload.encrypted, payload.iv, key_b)

    @pytest.mark.asyncio
    async def test_short_ciphertext_rejected(self):
        """Test ciphertext shorter than the tag is refused."""
        key = await fast_key("correct horse", generate_salt())
        with pytest.raises(ValueError):
            await decrypt(b64encode(b"short"), b64encode(b"\x00" * 12), key)

    @pytest.mark.asyncio
    async def test_malformed_base64_propagates(self):
        """Test malformed base64 raises the decoder error."""
        key = await fast_key("correct horse", generate_salt())
        with pytest.raises(binascii.Error):
            await decrypt("%%%", b64encode(b"\x00" * 12), key)

    @pytest.mark.asyncio
    async def test_concrete_scenario(self):
        """Test the documented scenario with the default 100k iterations."""
        salt = generate_salt()
        assert len(b64decode(salt)) == 16
        key = await derive_key("Tr0ub4dor&3", salt)
        payload = await encrypt("my-secret-api-key", key)
        assert await decrypt(payload.encrypted, payload.iv, key) == "my-secret-api-key"
        wrong = await derive_key("wrong-password", salt)
        with pytest.raises(InvalidTag):
            await decrypt(payload.encrypted, payload.iv, wrong)
