"""Password hashing utilities.

Learn: bcrypt embeds a random salt and its cost factor in every hash, so
only the hash string is stored. bcrypt ignores input past 72 bytes; the
password is truncated explicitly so hashing and verification always agree
on what was hashed.
"""

import bcrypt


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password. Lower rounds only in tests."""
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash. A malformed hash never matches."""
    try:
        pw_bytes = password.encode("utf-8")[:72]
        hash_bytes = password_hash.encode("utf-8")
        return bcrypt.checkpw(pw_bytes, hash_bytes)
    except (ValueError, TypeError):
        return False
