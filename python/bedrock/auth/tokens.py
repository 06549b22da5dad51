"""HS256 identity tokens.

Tokens carry three claims:
- sub: the user identifier
- iat: issue time
- exp: expiry; a token is rejected once now >= exp

Only HMAC algorithms are accepted on validation. There is no revocation list.
"""

from datetime import UTC, datetime, timedelta

import jwt

from bedrock.errors import ExpiredTokenError, InvalidSignatureError, MalformedTokenError

SIGNING_ALGORITHM = "HS256"

# Accepted on validation; anything else (RS*, ES*, none) is a signature failure
HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]


def generate_jwt(user_id: str, secret: str, expiration: timedelta) -> str:
    """Issue a signed token for user_id.

    Args:
        user_id: Value of the sub claim.
        secret: Shared HMAC secret.
        expiration: Lifetime of the token from now.

    Returns:
        The encoded token.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + expiration,
    }
    return jwt.encode(payload, secret, algorithm=SIGNING_ALGORITHM)


def validate_jwt(token: str, secret: str) -> str:
    """Verify token and return its subject.

    Args:
        token: Encoded token.
        secret: Shared HMAC secret.

    Returns:
        The sub claim.

    Raises:
        InvalidSignatureError: Wrong secret, or the token uses a non-HMAC algorithm.
        ExpiredTokenError: The token has expired.
        MalformedTokenError: The token cannot be parsed or lacks sub/exp.
    """
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=HMAC_ALGORITHMS,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise ExpiredTokenError("token has expired") from e
    except jwt.InvalidAlgorithmError as e:
        raise InvalidSignatureError("unexpected signing method") from e
    except jwt.InvalidSignatureError as e:
        # Must precede DecodeError, which it subclasses
        raise InvalidSignatureError("signature verification failed") from e
    except jwt.DecodeError as e:
        raise MalformedTokenError("token could not be decoded") from e
    except jwt.InvalidTokenError as e:
        raise MalformedTokenError(f"invalid token claims: {e}") from e

    subject = claims.get("sub")
    if not isinstance(subject, str):
        raise MalformedTokenError("sub claim must be a string")

    return subject
