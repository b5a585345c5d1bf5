import bcrypt

from pasteshare.web.app.config import settings

# bcrypt only looks at the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72

def _encode(password: str) -> bytes:
    return password.encode('utf-8')[:_BCRYPT_MAX_BYTES]

def hash_password(password: str, rounds: int = None) -> str:
    """Hash a paste password using bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode(password), salt).decode('utf-8')

def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against its hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(_encode(password), hashed.encode('utf-8'))
    except ValueError:
        return False
