"""
Vault data models — items, payloads, verification probes and locked vaults.

These are the shapes exchanged with the UI layer (plaintext items) and with
the storage layer (base64 ciphertext records). Wire names are camelCase
(``testEncrypted``, ``itemType``...); Python code uses snake_case, both are
accepted on input.
"""
from typing import Literal

import orjson
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

ItemType = Literal["key_value", "secure_note"]


class WireModel(BaseModel):
    """Base for every vault model: immutable, camelCase on the wire."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "frozen": True,
    }


class VaultItem(WireModel):
    """A plaintext secret as entered by the user."""

    label: str
    value: str
    item_type: ItemType = "key_value"


class EncryptedPayload(WireModel):
    """Result of a single envelope encryption (both fields base64)."""

    encrypted: str
    iv: str


class EncryptedVaultItem(WireModel):
    """A vault item at rest. ``label`` is never encrypted."""

    label: str
    encrypted: str
    iv: str
    item_type: ItemType = "key_value"


class DecryptedVaultItem(WireModel):
    """Per-item result of a batch decryption.

    ``ok`` is False when the item could not be decrypted; ``value`` then
    holds the configured sentinel string. Check ``ok`` (or ``failed``),
    never compare ``value`` against the sentinel.
    """

    label: str
    value: str
    item_type: ItemType = "key_value"
    ok: bool = True

    @property
    def failed(self) -> bool:
        return not self.ok


class VerificationProbe(WireModel):
    """Known plaintext encrypted under the vault key at lock time."""

    test_encrypted: str
    test_iv: str
    expected_plaintext: str


class LockedVault(WireModel):
    """Everything the storage layer persists for one locked vault."""

    salt: str
    probe: VerificationProbe
    items: list[EncryptedVaultItem] = Field(default_factory=list)

    def dumps(self) -> bytes:
        """Serialize to JSON bytes using the camelCase wire names."""
        return orjson.dumps(self.model_dump(by_alias=True))

    @classmethod
    def loads(cls, data: bytes | str) -> "LockedVault":
        """Parse JSON produced by :meth:`dumps`.

        Raises:
            orjson.JSONDecodeError: If data is not valid JSON.
            pydantic.ValidationError: If a required field is missing.
        """
        return cls.model_validate(orjson.loads(data))
