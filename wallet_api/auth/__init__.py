"""
Admin authentication
"""
from wallet_api.auth.jwt_auth import (
    create_access_token,
    create_admin_session_token,
    decode_token,
    validate_admin_token,
    verify_admin_password,
)

__all__ = [
    "create_access_token",
    "create_admin_session_token",
    "decode_token",
    "validate_admin_token",
    "verify_admin_password",
]
