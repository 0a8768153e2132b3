"""
Operator password hashing.
"""

from passlib.context import CryptContext

_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Return a bcrypt hash suitable for ADMIN_PASSWORD_HASH."""
    return _context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash. Malformed hashes never match."""
    if not password_hash:
        return False
    try:
        return _context.verify(password, password_hash)
    except ValueError:
        return False
