"""
Admin session tokens and password check
"""
import hmac
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from wallet_api.config.settings import settings
from wallet_api.utils.exceptions import AuthenticationError

ADMIN_ROLE = "admin"


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token

    Args:
        data: Data to encode in the token (subject, roles)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ADMIN_SESSION_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "iat": datetime.utcnow()})

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def create_admin_session_token(expires_delta: Optional[timedelta] = None) -> str:
    """Token stored in the admin session cookie"""
    return create_access_token({"sub": ADMIN_ROLE, "roles": [ADMIN_ROLE]}, expires_delta)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT token

    Raises:
        AuthenticationError: If token is invalid, expired, or malformed
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        raise AuthenticationError() from e


def validate_admin_token(token: Optional[str]) -> Dict[str, Any]:
    """
    Validate an admin session token (with or without "Bearer " prefix)

    Raises:
        AuthenticationError: Missing, invalid, or not an admin session
    """
    if token and token.startswith("Bearer "):
        token = token[7:]

    if not token:
        raise AuthenticationError()

    payload = decode_token(token)

    roles = payload.get("roles", [])
    if isinstance(roles, str):
        roles = [roles]
    elif not isinstance(roles, list):
        roles = []

    if ADMIN_ROLE not in roles:
        raise AuthenticationError()

    return payload


def verify_admin_password(password: Optional[str], expected: Optional[str] = None) -> bool:
    """Constant-time comparison of the submitted password against ADMIN_PASSWORD"""
    expected = (expected if expected is not None else settings.ADMIN_PASSWORD or "").strip()
    if not password or not expected:
        return False
    return hmac.compare_digest(password.strip().encode("utf-8"), expected.encode("utf-8"))
