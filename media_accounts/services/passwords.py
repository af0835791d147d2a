"""Credential verification - Argon2id password hashing."""

from functools import lru_cache

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check ``password`` against a stored hash.

    Accounts without a password (external identity only) never match.
    """
    if not password_hash:
        return False
    try:
        return ph.verify(password_hash, password)
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError):
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return ph.hash("dummy-password-for-timing")


def burn_verification_time(password: str) -> None:
    """Run a verification against a throwaway hash.

    Called when the account does not exist so the response time matches a
    real password check.
    """
    verify_password(password, _dummy_hash())
