"""Vault Envelope — client-side encryption of vault secrets.

Security Note (Threat Model):
    The server only ever stores salts, IVs and ciphertexts; the master
    password and derived key exist transiently in process memory. Key
    bytes are zeroed when a DerivedKey scope exits, but immutable copies
    made by the underlying crypto library may outlive it until garbage
    collection. This is an accepted limitation of a Python runtime.
"""

from .envelope import VaultEnvelope, IncorrectPasswordError, PROBE_PLAINTEXT
from .config import VaultConfig, DECRYPTION_FAILED
from .crypto import (
    CryptoProvider,
    DerivedKey,
    derive_key,
    generate_salt,
    encrypt,
    decrypt,
)
from .passwords import (
    generate_secure_password,
    hash_password_for_verification,
    validate_master_password,
)

__all__ = [
    "VaultEnvelope",
    "IncorrectPasswordError",
    "PROBE_PLAINTEXT",
    "VaultConfig",
    "DECRYPTION_FAILED",
    "CryptoProvider",
    "DerivedKey",
    "derive_key",
    "generate_salt",
    "encrypt",
    "decrypt",
    "generate_secure_password",
    "hash_password_for_verification",
    "validate_master_password",
]
