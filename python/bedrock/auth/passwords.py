"""bcrypt password hashing with a fixed cost of 12."""

import bcrypt

BCRYPT_COST = 12

# bcrypt only looks at the first 72 bytes of input
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash password with a fresh random salt.

    Raises:
        ValueError: The password is longer than 72 bytes when UTF-8 encoded.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")

    hashed = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=BCRYPT_COST))
    return hashed.decode("ascii")


def check_password(password: str, hashed: str) -> bool:
    """Return True when password matches hashed; malformed hashes never match."""
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False

    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        return False
