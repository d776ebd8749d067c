"""
Vault Configuration — validated settings for the encryption envelope.

Reads optional overrides from environment variables:
    VAULT_PBKDF2_ITERATIONS = <integer, >= 1000>
    VAULT_SALT_LENGTH = <integer, >= 16>
    VAULT_MIN_PASSWORD_LENGTH = <integer, >= 1>
    VAULT_DECRYPTION_SENTINEL = <non-empty string>
"""
import os
import logging

from pydantic import BaseModel, Field, field_validator

from .crypto import PBKDF2_ITERATIONS, KEY_LENGTH, SALT_SIZE, NONCE_SIZE

logger = logging.getLogger("vault_envelope")

DECRYPTION_FAILED = "[DECRYPTION_FAILED]"
MIN_PASSWORD_LENGTH = 8

_ENV_FIELDS = {
    "VAULT_PBKDF2_ITERATIONS": "pbkdf2_iterations",
    "VAULT_SALT_LENGTH": "salt_length",
    "VAULT_MIN_PASSWORD_LENGTH": "min_password_length",
    "VAULT_DECRYPTION_SENTINEL": "decryption_sentinel",
}


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    pbkdf2_iterations: int = Field(default=PBKDF2_ITERATIONS, ge=1000)
    salt_length: int = Field(default=SALT_SIZE, ge=16)
    iv_length: int = Field(default=NONCE_SIZE)
    key_length: int = Field(default=KEY_LENGTH)
    min_password_length: int = Field(default=MIN_PASSWORD_LENGTH, ge=1)
    decryption_sentinel: str = Field(default=DECRYPTION_FAILED, min_length=1)

    model_config = {"frozen": True}

    @field_validator("iv_length")
    @classmethod
    def validate_iv_length(cls, v: int) -> int:
        """AES-GCM IVs are 96 bits."""
        if v != NONCE_SIZE:
            raise ValueError(f"iv_length must be {NONCE_SIZE}, got {v}")
        return v

    @field_validator("key_length")
    @classmethod
    def validate_key_length(cls, v: int) -> int:
        """Validate key length is a valid AES key size."""
        if v not in (16, 24, 32):
            raise ValueError(f"Unsupported AES key length: {v}")
        return v

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig from environment overrides.

        Returns:
            Populated VaultConfig instance (defaults for unset variables).
        """
        values = {
            field: os.environ[name]
            for name, field in _ENV_FIELDS.items()
            if name in os.environ
        }
        config = cls(**values)
        logger.debug(
            "Vault config loaded: iterations=%d salt_length=%d",
            config.pbkdf2_iterations, config.salt_length,
        )
        return config
