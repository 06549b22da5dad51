"""Authentication: identity tokens, password hashing, and the auth middleware."""

from bedrock.auth.middleware import get_user_id, require_auth, with_user_id
from bedrock.auth.passwords import check_password, hash_password
from bedrock.auth.tokens import generate_jwt, validate_jwt

__all__ = [
    "check_password",
    "generate_jwt",
    "get_user_id",
    "hash_password",
    "require_auth",
    "validate_jwt",
    "with_user_id",
]
