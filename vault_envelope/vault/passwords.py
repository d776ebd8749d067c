"""Master password helpers: validation, local pre-check hash, suggestions."""
import string

from .crypto import CryptoProvider, DEFAULT_PROVIDER, b64encode

PASSWORD_CHARSET = (
    string.ascii_lowercase
    + string.ascii_uppercase
    + string.digits
    + "!@#$%^&*()_+-=[]{}|;:,.<>?"
)


def validate_master_password(password: str, min_length: int = 8) -> None:
    """Reject passwords that are too weak to lock a vault with.

    Raises:
        ValueError: If password is empty or shorter than min_length.
    """
    if not password:
        raise ValueError("Master password cannot be empty")
    if len(password) < min_length:
        raise ValueError(
            f"Master password must be at least {min_length} characters long"
        )


def hash_password_for_verification(
    password: str, salt: str, provider: CryptoProvider | None = None
) -> str:
    """SHA-256 of ``password + salt``, base64-encoded.

    Only a cheap local gate before running PBKDF2. Not iterated, so it must
    never be persisted or sent to a server.
    """
    provider = provider or DEFAULT_PROVIDER
    return b64encode(provider.sha256((password + salt).encode("utf-8")))


def generate_secure_password(
    length: int = 16,
    provider: CryptoProvider | None = None,
    charset: str = PASSWORD_CHARSET,
) -> str:
    """Suggest a random password drawn uniformly from ``charset``.

    Bytes at or above the largest multiple of ``len(charset)`` are
    discarded (rejection sampling), so there is no modulo bias.
    """
    if length < 1:
        raise ValueError(f"Password length must be positive, got {length}")
    if not 0 < len(charset) <= 256:
        raise ValueError("charset must hold between 1 and 256 characters")
    provider = provider or DEFAULT_PROVIDER
    size = len(charset)
    limit = 256 - (256 % size)
    chars: list[str] = []
    while len(chars) < length:
        for byte in provider.random_bytes(length - len(chars)):
            if byte < limit:
                chars.append(charset[byte % size])
    return "".join(chars)
