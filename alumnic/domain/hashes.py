"""
Credential hashing for new directory entries.

Two one-way representations of the student's password are stored:

- userPassword: salted SHA-1 ("{SSHA}"), used to bind against the directory
  and to log in to the labs
- sambaNTPassword: the MD4 "NT hash" kept for the legacy Samba subsystem,
  never used to verify a directory login

SSHA has been considered weak for a long time; it is kept because every
consumer of the directory understands it.

Python strings are immutable, so the plaintext itself cannot be wiped; the
byte buffers derived from it here are bytearrays cleared after use.
"""

import base64
import hashlib
import secrets

from passlib.hash import nthash
from pydantic import SecretStr

SSHA_PREFIX = "{SSHA}"
SALT_SIZE = 4
SHA1_DIGEST_SIZE = 20


def _wipe(buffer: bytearray) -> None:
    for index in range(len(buffer)):
        buffer[index] = 0


def _reveal(secret: SecretStr | str) -> str:
    if isinstance(secret, SecretStr):
        return secret.get_secret_value()
    return secret


def legacy_hash(secret: SecretStr | str) -> str:
    """
    Compute the Samba NT hash: MD4 over UTF-16LE, uppercase hex.

    passlib provides MD4 even where OpenSSL has dropped it from hashlib.
    """
    return nthash.hash(_reveal(secret)).upper()


def salted_hash(secret: SecretStr | str, salt: bytes) -> str:
    """
    Compute "{SSHA}" + base64(SHA1(secret || salt) || salt).

    Args:
        secret: Plaintext password
        salt: Exactly SALT_SIZE bytes

    Returns:
        The encoded hash, ready for userPassword
    """
    if len(salt) != SALT_SIZE:
        raise ValueError(f"salt must be {SALT_SIZE} bytes")

    encoded = bytearray(_reveal(secret).encode("utf-8"))
    digest = bytearray(hashlib.sha1(bytes(encoded) + salt).digest())
    payload = bytearray(digest + salt)
    try:
        return SSHA_PREFIX + base64.b64encode(payload).decode("ascii")
    finally:
        _wipe(encoded)
        _wipe(digest)
        _wipe(payload)


def generate_salted_hash(secret: SecretStr | str) -> str:
    """Salted hash with a fresh cryptographically random salt."""
    salt = bytearray(secrets.token_bytes(SALT_SIZE))
    try:
        return salted_hash(secret, bytes(salt))
    finally:
        _wipe(salt)


def verify_salted_hash(secret: SecretStr | str, stored: str) -> bool:
    """
    Check a password against a stored "{SSHA}" hash.

    The salt is recovered from the stored value, the hash recomputed and
    the two encoded strings compared in constant time.

    Malformed stored values (wrong prefix, bad base64, wrong length) never
    match: they return False instead of raising.
    """
    if not stored.startswith(SSHA_PREFIX):
        return False
    try:
        decoded = bytearray(base64.b64decode(stored[len(SSHA_PREFIX) :], validate=True))
    except ValueError:
        return False

    try:
        if len(decoded) != SHA1_DIGEST_SIZE + SALT_SIZE:
            return False
        recomputed = salted_hash(secret, bytes(decoded[SHA1_DIGEST_SIZE:]))
        return secrets.compare_digest(recomputed.encode("ascii"), stored.encode("utf-8"))
    finally:
        _wipe(decoded)
