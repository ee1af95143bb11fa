"""Password hashing and JWT access tokens.

Tokens carry the caller's id, role and verified flag. They are signed and
checked against wall-clock time, never the virtual clock.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from freelance_plans.config import Config, get_config
from freelance_plans.logging_config import get_logger
from freelance_plans.models.api_request import PASSWORD_MAX_BYTES as BCRYPT_MAX_BYTES
from freelance_plans.models.api_response import TokenResponse
from freelance_plans.models.user import Principal, Role, User

logger = get_logger(__name__)


class InvalidTokenError(Exception):
    """Raised when an access token is missing claims, expired or forged."""

    pass


def _password_bytes(password: str) -> bytes:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
    return encoded


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt.

    Raises:
        ValueError: If the password is longer than 72 bytes
    """
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        return False


def issue_access_token(user: User, config: Optional[Config] = None) -> TokenResponse:
    """Sign an access token for a user.

    Returns:
        TokenResponse with the encoded token and its lifetime in seconds
    """
    auth = (config or get_config()).auth
    lifetime = timedelta(minutes=auth.access_token_expires_minutes)
    issued_at = datetime.now(timezone.utc)

    claims = {
        "sub": str(user.id),
        "role": int(user.role),
        "is_verified": user.is_verified,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    token = jwt.encode(claims, auth.jwt_secret, algorithm=auth.jwt_algorithm)

    logger.info("access_token_issued", user_id=user.id, role=user.role.name.lower())
    return TokenResponse(access_token=token, expires_in=int(lifetime.total_seconds()))


def decode_access_token(token: str, config: Optional[Config] = None) -> Principal:
    """Verify a token and return the caller it identifies.

    Raises:
        InvalidTokenError: If the signature, expiry or claims are invalid
    """
    auth = (config or get_config()).auth
    try:
        payload = jwt.decode(
            token,
            auth.jwt_secret,
            algorithms=[auth.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError("Invalid token") from e

    try:
        return Principal(
            user_id=int(payload["sub"]),
            role=Role(int(payload["role"])),
            is_verified=bool(payload.get("is_verified", False)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidTokenError("Token claims are malformed") from e
