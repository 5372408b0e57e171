"""Password hashing with bcrypt."""

import secrets

import bcrypt

from alive.config import settings

# Unambiguous characters for generated passwords
TEMP_PASSWORD_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789"


def hash_password(password: str) -> str:
    """Hash a password with a fresh salt."""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored hash. A missing hash never matches."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def generate_temp_password(length: int = 8) -> str:
    """Generate a temporary password for administrator-created accounts."""
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length)) + "!"
