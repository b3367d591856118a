"""Tests for password generation and hashing."""

from __future__ import annotations

import hashlib
import math
from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import pytest

from provisioning.domain.errors import SecretSourceUnavailable
from provisioning.security import passwords
from provisioning.security.passwords import (
    PASSWORD_ALPHABET,
    PASSWORD_LENGTH,
    generate_password,
    hash_password,
)


def _chi_square_critical(degrees: int, z: float) -> float:
    """Wilson-Hilferty approximation of the upper chi-square quantile."""
    term = 2.0 / (9.0 * degrees)
    return degrees * (1.0 - term + z * math.sqrt(term)) ** 3


def test_alphabet_excludes_ambiguous_glyphs():
    assert len(set(PASSWORD_ALPHABET)) == len(PASSWORD_ALPHABET) == 67
    for glyph in "ilLIoO01":
        assert glyph not in PASSWORD_ALPHABET


def test_generate_password_length_and_alphabet():
    for _ in range(500):
        password = generate_password()
        assert len(password) == PASSWORD_LENGTH == 20
        assert set(password) <= set(PASSWORD_ALPHABET)


def test_generate_password_positions_are_uniform():
    samples = 10_000
    per_position = [Counter() for _ in range(PASSWORD_LENGTH)]
    for _ in range(samples):
        for index, char in enumerate(generate_password()):
            per_position[index][char] += 1

    expected = samples / len(PASSWORD_ALPHABET)
    # p = 1e-6 per position keeps the whole test well below one spurious failure per 10^4 runs.
    critical = _chi_square_critical(len(PASSWORD_ALPHABET) - 1, z=4.753)
    for counts in per_position:
        statistic = sum(
            (counts.get(char, 0) - expected) ** 2 / expected for char in PASSWORD_ALPHABET
        )
        assert statistic < critical


def test_generate_password_is_safe_across_threads():
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: generate_password(), range(2_000)))
    assert len(set(results)) == len(results)
    assert all(len(result) == PASSWORD_LENGTH for result in results)


def test_generate_password_reports_missing_random_source(monkeypatch):
    class BrokenRandom:
        def randrange(self, stop):
            raise NotImplementedError("/dev/urandom (or equivalent) not found")

    monkeypatch.setattr(passwords.secrets, "SystemRandom", BrokenRandom)
    with pytest.raises(SecretSourceUnavailable):
        generate_password()


def test_hash_password_stores_salted_pbkdf2_digest():
    encoded = hash_password("s3cret-Value", iterations=1_000)
    assert "s3cret-Value" not in encoded

    algorithm, iterations, salt_hex, digest_hex = encoded.split("$")
    assert algorithm == "pbkdf2_sha256"
    assert iterations == "1000"
    expected = hashlib.pbkdf2_hmac("sha256", b"s3cret-Value", bytes.fromhex(salt_hex), 1_000)
    assert digest_hex == expected.hex()


def test_hash_password_is_salted():
    assert hash_password("same", iterations=1_000) != hash_password("same", iterations=1_000)
