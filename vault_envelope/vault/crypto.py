"""
Vault Crypto Core — base64 codec, crypto provider, key derivation, AES-GCM.

Master password + salt → PBKDF2-HMAC-SHA256 (100k iterations) → 256-bit
AES-GCM key. Each encryption uses a fresh random 96-bit IV; the 16-byte GCM
tag is appended to the ciphertext.

Security Note:
    Never log passwords, key material, plaintext or ciphertext values.
    Derived keys are non-extractable and should be used as scoped resources
    (``with await derive_key(...) as key:``) so their bytes are wiped.
"""
import os
import base64
import asyncio
import logging
from collections.abc import Iterable

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..models import EncryptedPayload

logger = logging.getLogger("vault_envelope")

PBKDF2_ITERATIONS = 100_000
KEY_LENGTH = 32  # AES-256
SALT_SIZE = 16
NONCE_SIZE = 12  # 96-bit IV
TAG_SIZE = 16  # GCM tag

KEY_USAGES = frozenset({"encrypt", "decrypt"})


# ---------------------------------------------------------------------------
# Base64 codec
# ---------------------------------------------------------------------------

def b64encode(data: bytes) -> str:
    """Standard base64 with padding."""
    return base64.b64encode(data).decode("ascii")


def b64decode(data: str) -> bytes:
    """Strict standard base64 decode.

    Raises:
        binascii.Error: On characters outside the alphabet or bad padding.
    """
    return base64.b64decode(data, validate=True)


# ---------------------------------------------------------------------------
# Crypto provider
# ---------------------------------------------------------------------------

class CryptoProvider:
    """Primitives used by the vault, backed by ``cryptography``.

    Subclass and pass to :class:`~vault_envelope.vault.envelope.VaultEnvelope`
    to swap the randomness source or backend (e.g. in tests).
    """

    def random_bytes(self, size: int) -> bytes:
        return os.urandom(size)

    def pbkdf2_sha256(
        self, password: bytes, salt: bytes, iterations: int, length: int
    ) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=length,
            salt=salt,
            iterations=iterations,
        )
        return kdf.derive(password)

    def aead(self, key: bytes) -> AESGCM:
        return AESGCM(key)

    def sha256(self, data: bytes) -> bytes:
        digest = hashes.Hash(hashes.SHA256())
        digest.update(data)
        return digest.finalize()

    def is_available(self) -> bool:
        """Capability probe: run each primitive once on throwaway input."""
        try:
            self.sha256(b"")
            key = self.pbkdf2_sha256(b"probe", bytes(SALT_SIZE), 1, KEY_LENGTH)
            nonce = self.random_bytes(NONCE_SIZE)
            cipher = self.aead(key)
            sealed = cipher.encrypt(nonce, b"probe", None)
            return cipher.decrypt(nonce, sealed, None) == b"probe"
        except Exception as err:  # any backend failure means unavailable
            logger.error("Crypto backend unavailable: %s", err)
            return False


# Resolved once at module load, shared by the module-level helpers.
DEFAULT_PROVIDER = CryptoProvider()


# ---------------------------------------------------------------------------
# Derived key
# ---------------------------------------------------------------------------

class DerivedKey:
    """Non-extractable AES-GCM key.

    The raw bytes never leave this object: ``export()``, pickling and
    copying raise ``TypeError``. Used as a (sync or async) context manager
    the key material is zeroed on exit; any later use raises ``RuntimeError``.
    """

    __slots__ = ("_material", "_provider", "_usages", "_wiped")

    algorithm = "AES-GCM"
    extractable = False

    def __init__(
        self,
        material: bytes,
        provider: CryptoProvider,
        usages: Iterable[str] = KEY_USAGES,
    ):
        self._material = bytearray(material)
        self._provider = provider
        self._usages = frozenset(usages)
        self._wiped = False

    @property
    def usages(self) -> frozenset:
        return self._usages

    @property
    def length(self) -> int:
        """Key length in bits."""
        return len(self._material) * 8

    @property
    def wiped(self) -> bool:
        return self._wiped

    def _cipher(self, usage: str) -> AESGCM:
        if self._wiped:
            raise RuntimeError("DerivedKey has been wiped")
        if usage not in self._usages:
            raise ValueError(f"DerivedKey does not permit '{usage}'")
        return self._provider.aead(bytes(self._material))

    def seal(self, nonce: bytes, data: bytes) -> bytes:
        """AES-GCM encrypt; returns ciphertext with the tag appended."""
        return self._cipher("encrypt").encrypt(nonce, data, None)

    def open(self, nonce: bytes, data: bytes) -> bytes:
        """AES-GCM decrypt and verify.

        Raises:
            cryptography.exceptions.InvalidTag: Authentication failed.
        """
        return self._cipher("decrypt").decrypt(nonce, data, None)

    def wipe(self) -> None:
        """Overwrite the key material with zeros."""
        self._material[:] = bytes(len(self._material))
        self._wiped = True

    def export(self) -> bytes:
        raise TypeError("DerivedKey is not extractable")

    def __reduce_ex__(self, protocol):
        raise TypeError("DerivedKey cannot be pickled")

    def __copy__(self):
        raise TypeError("DerivedKey cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("DerivedKey cannot be copied")

    def __enter__(self) -> "DerivedKey":
        return self

    def __exit__(self, *exc_info) -> None:
        self.wipe()

    async def __aenter__(self) -> "DerivedKey":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.wipe()

    def __repr__(self) -> str:
        state = " wiped" if self._wiped else ""
        return (
            f"<DerivedKey {self.algorithm}-{self.length} "
            f"usages={sorted(self._usages)} extractable=False{state}>"
        )


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def generate_salt(
    provider: CryptoProvider | None = None, size: int = SALT_SIZE
) -> str:
    """Return ``size`` CSPRNG bytes, base64-encoded. One salt per vault."""
    provider = provider or DEFAULT_PROVIDER
    return b64encode(provider.random_bytes(size))


async def derive_key(
    password: str,
    salt: str,
    *,
    provider: CryptoProvider | None = None,
    iterations: int = PBKDF2_ITERATIONS,
    length: int = KEY_LENGTH,
) -> DerivedKey:
    """Derive an AES-GCM key from a master password using PBKDF2-SHA256.

    The salt length is not checked: a salt of the wrong size simply yields
    a different key. PBKDF2 runs in a worker thread.

    Args:
        password: Master password. Callers reject empty passwords.
        salt: Base64-encoded vault salt.
        provider: Crypto provider (defaults to ``DEFAULT_PROVIDER``).
        iterations: PBKDF2 iteration count.
        length: Key length in bytes.

    Returns:
        Non-extractable :class:`DerivedKey`.

    Raises:
        binascii.Error: If salt is not valid base64.
    """
    provider = provider or DEFAULT_PROVIDER
    salt_bytes = b64decode(salt)
    material = await asyncio.to_thread(
        provider.pbkdf2_sha256,
        password.encode("utf-8"),
        salt_bytes,
        iterations,
        length,
    )
    logger.debug("Derived vault key (%d iterations)", iterations)
    return DerivedKey(material, provider)


# ---------------------------------------------------------------------------
# Envelope encryption
# ---------------------------------------------------------------------------

async def encrypt(
    plaintext: str,
    key: DerivedKey,
    *,
    provider: CryptoProvider | None = None,
    iv_size: int = NONCE_SIZE,
) -> EncryptedPayload:
    """Encrypt a string under ``key`` with a fresh random IV.

    Both fields of the result must be stored together.
    """
    provider = provider or DEFAULT_PROVIDER
    iv = provider.random_bytes(iv_size)
    ciphertext = key.seal(iv, plaintext.encode("utf-8"))
    return EncryptedPayload(encrypted=b64encode(ciphertext), iv=b64encode(iv))


async def decrypt(encrypted: str, iv: str, key: DerivedKey) -> str:
    """Decrypt and authenticate a base64 ciphertext.

    Raises:
        binascii.Error: Malformed base64.
        ValueError: Ciphertext shorter than the GCM tag.
        cryptography.exceptions.InvalidTag: Wrong key or tampered data.
    """
    ciphertext = b64decode(encrypted)
    nonce = b64decode(iv)
    if len(ciphertext) < TAG_SIZE:
        raise ValueError(
            f"ciphertext too short: {len(ciphertext)} bytes "
            f"(minimum {TAG_SIZE})"
        )
    return key.open(nonce, ciphertext).decode("utf-8")
