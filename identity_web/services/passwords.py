"""Password hashing and passcode generation."""

import secrets
import string

from werkzeug.security import generate_password_hash, check_password_hash

PASSCODE_ALPHABET = string.ascii_uppercase + string.digits


def hash_password(password: str) -> str:
    """Generate a salted hash of a password (or passcode)."""
    return generate_password_hash(password)


def check_password(password: str, hashed: str) -> bool:
    """Check a password against a hash made by :func:`hash_password`."""
    if not password or not hashed:
        return False
    return check_password_hash(hashed, password)


def generate_passcode(length: int = 8) -> str:
    """Generate a random passcode that is easy to type from an email."""
    return ''.join(secrets.choice(PASSCODE_ALPHABET) for _ in range(length))
