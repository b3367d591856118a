"""Generation and hashing of account passwords."""

from __future__ import annotations

import hashlib
import secrets

from ..domain.errors import SecretSourceUnavailable

PASSWORD_LENGTH = 20
# Letters exclude i, l, o (either case); digits exclude 0 and 1.
PASSWORD_ALPHABET = "abcdefghjkmnpqrstuvwxyzABCDEFGHJKMNPQRSTUVWXYZ23456789!@£$%^&*()_+="

_PBKDF2_ITERATIONS = 390_000


def generate_password() -> str:
    """Return a random 20 character password drawn from :data:`PASSWORD_ALPHABET`.

    Every character is chosen independently and uniformly with a fresh
    ``secrets.SystemRandom`` so concurrent callers never share generator state.

    Raises
    ------
    SecretSourceUnavailable
        When the operating system offers no secure random source.
    """

    buffer = [""] * PASSWORD_LENGTH
    try:
        rng = secrets.SystemRandom()
        for index in range(PASSWORD_LENGTH):
            buffer[index] = PASSWORD_ALPHABET[rng.randrange(len(PASSWORD_ALPHABET))]
    except NotImplementedError as exc:
        raise SecretSourceUnavailable("secure random source unavailable") from exc
    return "".join(buffer)


def hash_password(password: str, *, iterations: int = _PBKDF2_ITERATIONS) -> str:
    """Return a salted PBKDF2-SHA256 digest string suitable for storage."""
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"pbkdf2_sha256${iterations}${salt.hex()}${digest.hex()}"

