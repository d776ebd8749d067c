"""Vault Envelope.

Password-based zero-knowledge encryption for vault items.
"""
from .version import __version__
from .models import (
    VaultItem,
    EncryptedPayload,
    EncryptedVaultItem,
    DecryptedVaultItem,
    VerificationProbe,
    LockedVault,
)
from .vault import VaultEnvelope, VaultConfig, IncorrectPasswordError

__all__ = [
    "__version__",
    "VaultItem",
    "EncryptedPayload",
    "EncryptedVaultItem",
    "DecryptedVaultItem",
    "VerificationProbe",
    "LockedVault",
    "VaultEnvelope",
    "VaultConfig",
    "IncorrectPasswordError",
]
