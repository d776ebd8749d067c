"""
VaultEnvelope — password-based encryption of vault items.

Provides the public API of the vault envelope:
- ``derive_key`` / ``encrypt`` / ``decrypt`` — single-value primitives
- ``encrypt_items`` / ``decrypt_items`` — batch operations over vault items
- ``verify_password`` / ``create_probe`` — cheap master password check
- ``lock`` / ``unlock`` — full vault lifecycle producing a ``LockedVault``

Security Note:
    Never log passwords, plaintext or ciphertext values. Only log labels,
    item counts and operations. Keys are derived per operation and wiped
    when the operation completes.
"""
import hmac
import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from cryptography.exceptions import InvalidTag

from ..models import (
    VaultItem,
    EncryptedPayload,
    EncryptedVaultItem,
    DecryptedVaultItem,
    VerificationProbe,
    LockedVault,
)
from . import crypto
from . import passwords
from .config import VaultConfig
from .crypto import CryptoProvider, DerivedKey

logger = logging.getLogger("vault_envelope")

PROBE_PLAINTEXT = "VAULT_ENVELOPE_OK"


class IncorrectPasswordError(ValueError):
    """The master password does not open this vault."""


def _as_item(item: VaultItem | Mapping[str, Any]) -> VaultItem:
    if isinstance(item, VaultItem):
        return item
    return VaultItem.model_validate(item)


def _as_encrypted(item: EncryptedVaultItem | Mapping[str, Any]) -> EncryptedVaultItem:
    if isinstance(item, EncryptedVaultItem):
        return item
    return EncryptedVaultItem.model_validate(item)


def _describe(item: Any) -> tuple[str, str]:
    """Best-effort (label, item_type) of a record that failed validation."""
    if isinstance(item, EncryptedVaultItem):
        return item.label, item.item_type
    if not isinstance(item, Mapping):
        return "", "key_value"
    label = item.get("label")
    item_type = item.get("itemType", item.get("item_type"))
    if item_type not in ("key_value", "secure_note"):
        item_type = "key_value"
    return (label if isinstance(label, str) else ""), item_type


class VaultEnvelope:
    """Zero-knowledge encryption envelope for vault items.

    Items are encrypted with AES-256-GCM under a key derived from the
    master password and the vault salt (PBKDF2-SHA256). Only the label of
    each item stays in plaintext.

    A :class:`CryptoProvider` is injected at construction time; the
    default one is backed by the ``cryptography`` package.
    """

    def __init__(
        self,
        config: VaultConfig | None = None,
        provider: CryptoProvider | None = None,
    ):
        self._config = config or VaultConfig()
        self._provider = provider or crypto.DEFAULT_PROVIDER
        if not self._provider.is_available():
            raise RuntimeError(
                "Crypto backend unavailable: AES-GCM, PBKDF2 and SHA-256 "
                "are required by the vault"
            )

    @property
    def config(self) -> VaultConfig:
        return self._config

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def generate_salt(self) -> str:
        """Generate a new base64 vault salt. Called once per vault."""
        return crypto.generate_salt(self._provider, self._config.salt_length)

    async def derive_key(self, password: str, salt: str) -> DerivedKey:
        """Derive the vault key; use it as ``with await ... as key:``."""
        return await crypto.derive_key(
            password,
            salt,
            provider=self._provider,
            iterations=self._config.pbkdf2_iterations,
            length=self._config.key_length,
        )

    async def encrypt(self, plaintext: str, key: DerivedKey) -> EncryptedPayload:
        return await crypto.encrypt(
            plaintext, key,
            provider=self._provider,
            iv_size=self._config.iv_length,
        )

    async def decrypt(self, encrypted: str, iv: str, key: DerivedKey) -> str:
        return await crypto.decrypt(encrypted, iv, key)

    # ------------------------------------------------------------------
    # Per-item helpers
    # ------------------------------------------------------------------

    async def _encrypt_item(self, item: VaultItem, key: DerivedKey) -> EncryptedVaultItem:
        payload = await self.encrypt(item.value, key)
        return EncryptedVaultItem(
            label=item.label,
            encrypted=payload.encrypted,
            iv=payload.iv,
            item_type=item.item_type,
        )

    async def _decrypt_item(
        self, item: EncryptedVaultItem | Mapping[str, Any], key: DerivedKey
    ) -> DecryptedVaultItem:
        try:
            # pydantic's ValidationError is a ValueError
            record = _as_encrypted(item)
            value = await self.decrypt(record.encrypted, record.iv, key)
        except (InvalidTag, ValueError, TypeError) as err:
            # wrong password or corrupt item: keep going with the others
            label, item_type = _describe(item)
            logger.warning(
                "Failed to decrypt vault item label=%s: %s",
                label, type(err).__name__,
            )
            return DecryptedVaultItem(
                label=label,
                value=self._config.decryption_sentinel,
                item_type=item_type,
                ok=False,
            )
        return DecryptedVaultItem(
            label=record.label, value=value, item_type=record.item_type,
        )

    async def _encrypt_all(
        self, items: list[VaultItem], key: DerivedKey
    ) -> list[EncryptedVaultItem]:
        return list(
            await asyncio.gather(*(self._encrypt_item(i, key) for i in items))
        )

    async def _decrypt_all(
        self, items: list[EncryptedVaultItem | Mapping[str, Any]], key: DerivedKey
    ) -> list[DecryptedVaultItem]:
        results = list(
            await asyncio.gather(*(self._decrypt_item(i, key) for i in items))
        )
        failed = sum(1 for r in results if r.failed)
        if failed:
            logger.warning(
                "Vault decrypt: %d of %d item(s) failed", failed, len(results),
            )
        return results

    async def _probe_matches(self, probe: VerificationProbe, key: DerivedKey) -> bool:
        decrypted = await self.decrypt(probe.test_encrypted, probe.test_iv, key)
        return hmac.compare_digest(
            decrypted.encode("utf-8"), probe.expected_plaintext.encode("utf-8"),
        )

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    async def encrypt_items(
        self,
        items: Iterable[VaultItem | Mapping[str, Any]],
        password: str,
        salt: str,
    ) -> list[EncryptedVaultItem]:
        """Encrypt every item's value under one derived key.

        Args:
            items: Plaintext items (models or ``{label, value}`` dicts).
            password: Master password.
            salt: Base64 vault salt.

        Returns:
            Encrypted items in input order, each with its own IV.
        """
        records = [_as_item(item) for item in items]
        with await self.derive_key(password, salt) as key:
            encrypted = await self._encrypt_all(records, key)
        logger.debug("Vault encrypt: %d item(s)", len(encrypted))
        return encrypted

    async def decrypt_items(
        self,
        items: Iterable[EncryptedVaultItem | Mapping[str, Any]],
        password: str,
        salt: str,
    ) -> list[DecryptedVaultItem]:
        """Decrypt every item independently under one derived key.

        An item that fails to decrypt comes back with ``ok=False`` and the
        sentinel value; the remaining items are unaffected.

        Raises:
            binascii.Error: If salt is not valid base64.
        """
        records = list(items)
        with await self.derive_key(password, salt) as key:
            return await self._decrypt_all(records, key)

    # ------------------------------------------------------------------
    # Password verification
    # ------------------------------------------------------------------

    async def create_probe(
        self,
        password: str,
        salt: str,
        expected_plaintext: str = PROBE_PLAINTEXT,
    ) -> VerificationProbe:
        """Encrypt a known constant for later password checks."""
        with await self.derive_key(password, salt) as key:
            payload = await self.encrypt(expected_plaintext, key)
        return VerificationProbe(
            test_encrypted=payload.encrypted,
            test_iv=payload.iv,
            expected_plaintext=expected_plaintext,
        )

    async def verify_password(
        self,
        password: str,
        salt: str,
        test_encrypted: str,
        test_iv: str,
        expected_plaintext: str,
    ) -> bool:
        """Return True if password decrypts the probe to expected_plaintext.

        Never raises: any failure means the password is wrong.
        """
        probe = VerificationProbe(
            test_encrypted=test_encrypted,
            test_iv=test_iv,
            expected_plaintext=expected_plaintext,
        )
        try:
            with await self.derive_key(password, salt) as key:
                return await self._probe_matches(probe, key)
        except Exception as err:
            logger.debug("Vault password rejected: %s", type(err).__name__)
            return False

    async def hash_password_for_verification(self, password: str, salt: str) -> str:
        return passwords.hash_password_for_verification(
            password, salt, provider=self._provider,
        )

    def generate_secure_password(self, length: int = 16) -> str:
        return passwords.generate_secure_password(length, provider=self._provider)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def lock(
        self,
        items: Iterable[VaultItem | Mapping[str, Any]],
        password: str,
        salt: str | None = None,
    ) -> LockedVault:
        """Encrypt items and build the verification probe.

        A new salt is generated when none is given (first lock of a vault);
        pass the existing salt to re-lock a vault.

        Raises:
            ValueError: If the master password is empty or too short, or
                an existing salt is empty.
            binascii.Error: If an existing salt is not valid base64.
        """
        passwords.validate_master_password(
            password, self._config.min_password_length,
        )
        records = [_as_item(item) for item in items]
        if salt is None:
            salt = self.generate_salt()
        elif not salt:
            raise ValueError("Vault salt cannot be empty")
        with await self.derive_key(password, salt) as key:
            payload = await self.encrypt(PROBE_PLAINTEXT, key)
            encrypted = await self._encrypt_all(records, key)
        probe = VerificationProbe(
            test_encrypted=payload.encrypted,
            test_iv=payload.iv,
            expected_plaintext=PROBE_PLAINTEXT,
        )
        logger.info("Vault locked: %d item(s)", len(encrypted))
        return LockedVault(salt=salt, probe=probe, items=encrypted)

    async def unlock(
        self, vault: LockedVault, password: str
    ) -> list[DecryptedVaultItem]:
        """Check the password against the probe, then decrypt all items.

        Raises:
            IncorrectPasswordError: If the probe does not verify.
        """
        with await self.derive_key(password, vault.salt) as key:
            try:
                valid = await self._probe_matches(vault.probe, key)
            except (InvalidTag, ValueError):
                valid = False
            if not valid:
                logger.info("Vault unlock rejected: incorrect master password")
                raise IncorrectPasswordError("Incorrect master password")
            items = await self._decrypt_all(list(vault.items), key)
        logger.info("Vault unlocked: %d item(s)", len(items))
        return items
