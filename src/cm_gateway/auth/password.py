"""Password hashing with the ``bcrypt`` library (>=4.0), cost from BCRYPT_ROUNDS."""

import bcrypt

from config.settings import settings


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Hash a plain-text password. Returns a utf-8 hash string."""
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
