"""Authentication and security utilities."""

from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
from fastapi import Cookie, Header, Request
from jose import JWTError, jwt

from common.logging_config import get_logger
from webapp.exceptions import InvalidTokenError
from webapp.utils import utc_now

logger = get_logger(__name__)

TOKEN_COOKIE_NAME = "token"


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        Bcrypt hash of the password
    """
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against a bcrypt hash.

    Args:
        password: Plain text password to verify
        password_hash: Bcrypt hash to verify against

    Returns:
        True if password matches hash, False otherwise
    """
    password_bytes = password.encode('utf-8')
    hash_bytes = password_hash.encode('utf-8')
    try:
        return bcrypt.checkpw(password_bytes, hash_bytes)
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def create_access_token(user_id: str, email: str, secret: str, algorithm: str, ttl_seconds: int) -> str:
    """
    Sign a token carrying the user's id and email.

    Args:
        user_id: Subject of the token
        email: User email, echoed back to clients
        secret: Signing secret
        algorithm: JWS algorithm (e.g., HS256)
        ttl_seconds: Lifetime of the token

    Returns:
        Encoded JWT string
    """
    issued_at = utc_now()
    claims = {
        "sub": user_id,
        "email": email,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=ttl_seconds),
    }
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str) -> Dict[str, Any]:
    """
    Verify a token's signature and expiry and return its claims.

    Raises:
        InvalidTokenError: If the token is malformed, expired or forged
    """
    try:
        claims = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        raise InvalidTokenError("Invalid or expired token") from e

    if not claims.get("sub"):
        raise InvalidTokenError("Token has no subject")
    return claims


def extract_token(authorization: Optional[str], cookie_token: Optional[str]) -> str:
    """
    Pick the bearer token from the Authorization header, falling back to the cookie.

    Raises:
        InvalidTokenError: If neither carries a token
    """
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() != "bearer" or not credentials.strip():
            raise InvalidTokenError("Invalid authorization header format")
        return credentials.strip()

    if cookie_token:
        return cookie_token

    raise InvalidTokenError("No authentication token provided")


def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Cookie(None),
) -> str:
    """
    FastAPI dependency to validate the access token and extract user_id.

    Returns:
        user_id of the authenticated user

    Raises:
        InvalidTokenError: 401 if the token is missing or invalid
    """
    raw_token = extract_token(authorization, token)
    user_id = request.app.state.container.auth_service.authenticate_token(raw_token)
    request.state.user_id = user_id
    return user_id
