"""Shared fixtures for vault envelope tests."""
import pytest

from vault_envelope.vault import VaultEnvelope, VaultConfig
from vault_envelope.vault.crypto import CryptoProvider


# Low iteration count keeps PBKDF2 fast; the concrete scenario test
# uses the production default.
FAST_ITERATIONS = 1000


@pytest.fixture
def config():
    """Vault config with a cheap key derivation."""
    return VaultConfig(pbkdf2_iterations=FAST_ITERATIONS)


@pytest.fixture
def provider():
    return CryptoProvider()


@pytest.fixture
def envelope(config, provider):
    """VaultEnvelope using the fast config."""
    return VaultEnvelope(config=config, provider=provider)


@pytest.fixture
def salt(envelope):
    return envelope.generate_salt()
