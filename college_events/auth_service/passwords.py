"""
Password hashing with Argon2.

Cost parameters are pinned so every stored digest is produced the same way.
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

ph = PasswordHasher(time_cost=3, memory_cost=65536, parallelism=4)


def hash_password(password: str) -> str:
    """
    Produce a salted Argon2 digest for storage.

    Raises:
        ValueError: The password is blank.
        argon2.exceptions.HashingError: The hashing primitive failed.
    """
    if not password:
        raise ValueError("password must not be blank")
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a password against a stored digest.

    Returns False for a wrong password and for digests that are not valid
    Argon2 hashes (for example seeded placeholder values).
    """
    if not password or not password_hash:
        return False
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False
