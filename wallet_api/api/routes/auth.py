"""
Admin session and wallet import endpoints
"""
from fastapi import APIRouter, Depends, Request, Response, Header
from typing import Optional
from sqlalchemy.orm import Session
from wallet_api.api.dependencies import get_db, get_accounts, get_settings, is_admin
from wallet_api.api.schemas.wallet import LoginRequest, ImportWalletRequest
from wallet_api.auth.jwt_auth import create_admin_session_token, verify_admin_password
from wallet_api.observability.logging import get_logger
from wallet_api.utils.exceptions import AuthenticationError

router = APIRouter()
logger = get_logger(__name__)


@router.post("/auth/login")
async def login(body: LoginRequest, response: Response, app_settings=Depends(get_settings)):
    """Check the admin password and set the session cookie"""
    if not verify_admin_password(body.password, app_settings.ADMIN_PASSWORD):
        logger.warning("Admin login rejected")
        raise AuthenticationError("Invalid password")

    token = create_admin_session_token()
    response.set_cookie(
        key=app_settings.ADMIN_SESSION_COOKIE,
        value=token,
        max_age=app_settings.ADMIN_SESSION_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=app_settings.ADMIN_SESSION_COOKIE_SECURE
    )
    logger.info("Admin logged in")
    return {"success": True}


@router.post("/auth/logout")
async def logout(response: Response, app_settings=Depends(get_settings)):
    response.delete_cookie(app_settings.ADMIN_SESSION_COOKIE)
    return {"success": True}


@router.get("/auth/check")
async def check(request: Request, authorization: Optional[str] = Header(None)):
    return {"isAdmin": is_admin(request, authorization)}


@router.post("/auth/import-wallet")
async def import_wallet(
    body: ImportWalletRequest,
    db: Session = Depends(get_db),
    accounts=Depends(get_accounts)
):
    """Find the wallet a seed phrase belongs to"""
    user = accounts.import_wallet(db, body.seed_phrase)
    return {"success": True, "userId": user.id}
