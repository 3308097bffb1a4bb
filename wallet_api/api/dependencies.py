"""
FastAPI dependencies

Services are built by the app factory and kept on app.state; these helpers
hand them to route handlers.
"""
from typing import Any, Dict, Generator, Optional
from fastapi import Header, Request
from sqlalchemy.orm import Session
from wallet_api.auth.jwt_auth import validate_admin_token
from wallet_api.utils.exceptions import AuthenticationError


def get_db(request: Request) -> Generator[Session, None, None]:
    yield from request.app.state.database.get_session()


def get_price_engine(request: Request):
    return request.app.state.price_engine


def get_ledger(request: Request):
    return request.app.state.ledger


def get_accounts(request: Request):
    return request.app.state.accounts


def get_notifier(request: Request):
    return request.app.state.notifier


def get_settings(request: Request):
    return request.app.state.settings


def _validate_session(request: Request, authorization: Optional[str]) -> Dict[str, Any]:
    cookie = request.cookies.get(request.app.state.settings.ADMIN_SESSION_COOKIE)
    for token in (cookie, authorization):
        if not token:
            continue
        try:
            return validate_admin_token(token)
        except AuthenticationError:
            continue
    raise AuthenticationError()


def is_admin(request: Request, authorization: Optional[str] = None) -> bool:
    try:
        _validate_session(request, authorization)
        return True
    except AuthenticationError:
        return False


def require_admin(request: Request, authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    """
    Admin gate: session cookie or "Authorization: Bearer <token>"

    Raises:
        AuthenticationError: 401 {"error": "Unauthorized"}
    """
    return _validate_session(request, authorization)
