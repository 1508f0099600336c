"""
Unit tests for credential hashing.

Tests hashing without any directory to verify:
- NT hash reference vector
- SSHA layout and salt handling
- Verification round trip and tamper detection
- Malformed stored values
"""

import base64
import hashlib

import pytest
from pydantic import SecretStr

from alumnic.domain.hashes import (
    SSHA_PREFIX,
    generate_salted_hash,
    legacy_hash,
    salted_hash,
    verify_salted_hash,
)


class TestLegacyHash:
    """Tests for the Samba NT hash."""

    def test_reference_vector(self) -> None:
        """MD4 over UTF-16LE of a known password."""
        assert legacy_hash("12345678") == "259745CB123A52AA2E693AAACCA2DB52"

    def test_accepts_secret_str(self) -> None:
        """SecretStr and plain str hash the same."""
        assert legacy_hash(SecretStr("12345678")) == legacy_hash("12345678")

    def test_uppercase_hex(self) -> None:
        """32 uppercase hex digits."""
        digest = legacy_hash("Segredo123")
        assert len(digest) == 32
        assert digest == digest.upper()
        int(digest, 16)


class TestSaltedHash:
    """Tests for SSHA hashing."""

    def test_layout(self) -> None:
        """Prefix, then base64 of SHA1(secret || salt) followed by the salt."""
        salt = b"\x01\x02\x03\x04"
        expected = hashlib.sha1(b"12345678" + salt).digest() + salt

        encoded = salted_hash("12345678", salt)

        assert encoded.startswith(SSHA_PREFIX)
        assert base64.b64decode(encoded[len(SSHA_PREFIX) :]) == expected

    def test_salt_must_be_four_bytes(self) -> None:
        """Other salt sizes are refused."""
        with pytest.raises(ValueError):
            salted_hash("12345678", b"\x00" * 8)

    def test_fresh_salt_each_time(self) -> None:
        """Two hashes of the same password differ."""
        assert generate_salted_hash("12345678") != generate_salted_hash("12345678")


class TestVerifySaltedHash:
    """Tests for SSHA verification."""

    @pytest.mark.parametrize("secret", ["12345678", "Segredo123", "çãé 💡", ""])
    def test_round_trip(self, secret: str) -> None:
        """A freshly generated hash verifies its own password."""
        assert verify_salted_hash(secret, generate_salted_hash(secret))

    def test_wrong_password(self) -> None:
        """A different password does not verify."""
        assert not verify_salted_hash("12345679", generate_salted_hash("12345678"))

    def test_any_single_byte_mutation_fails(self) -> None:
        """Changing any byte of the stored hash breaks verification."""
        stored = generate_salted_hash("12345678")
        raw = bytearray(base64.b64decode(stored[len(SSHA_PREFIX) :]))

        for index in range(len(raw)):
            mutated = bytearray(raw)
            mutated[index] ^= 0x01
            tampered = SSHA_PREFIX + base64.b64encode(bytes(mutated)).decode("ascii")
            assert not verify_salted_hash("12345678", tampered), index

    @pytest.mark.parametrize(
        "stored",
        [
            "",
            "{SHA}W6ph5Mm5Pz8GgiULbPgzG37mj9g=",
            "{SSHA}not base64!",
            "{SSHA}" + base64.b64encode(b"short").decode("ascii"),
            "{SSHA}" + base64.b64encode(b"x" * 30).decode("ascii"),
        ],
    )
    def test_malformed_stored_hash_is_false(self, stored: str) -> None:
        """Malformed stored values never match and never raise."""
        assert verify_salted_hash("12345678", stored) is False
