"""Password hashing and verification with bcrypt.

Plaintext passwords only ever pass through this module on their way to a
hash; nothing here logs or returns them.
"""

import bcrypt

from lms_backend.core import config
from lms_backend.core.errors import ValidationError

# bcrypt only reads the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72

_dummy_hash: bytes | None = None


def hash_password(password: str) -> str:
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Compare ``password`` with ``hashed`` in constant time.

    Malformed stored hashes and over-long candidates count as a mismatch.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES or not hashed:
        burn_verification_time(password)
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        return False


def burn_verification_time(password: str) -> None:
    """Run one throwaway bcrypt check.

    Used when there is no stored hash to compare against, so a sign-in for an
    unknown email costs the same as one with a wrong password.
    """
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS))
    bcrypt.checkpw(password.encode("utf-8")[:MAX_PASSWORD_BYTES], _dummy_hash)
