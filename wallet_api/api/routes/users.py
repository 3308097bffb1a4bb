"""
User management endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from wallet_api.api.dependencies import get_db, get_accounts, require_admin
from wallet_api.api.schemas.wallet import UserCreate, UserUpdate
from wallet_api.services.accounts import user_to_dict

router = APIRouter()


@router.get("/users", dependencies=[Depends(require_admin)])
async def list_users(db: Session = Depends(get_db), accounts=Depends(get_accounts)):
    """Every user with balances valued at current prices"""
    return await accounts.list_users(db)


@router.get("/users/{user_id}")
async def get_user(user_id: str, db: Session = Depends(get_db), accounts=Depends(get_accounts)):
    return await accounts.get_user_summary(db, user_id)


@router.post("/users", status_code=201, dependencies=[Depends(require_admin)])
async def create_user(body: UserCreate, db: Session = Depends(get_db), accounts=Depends(get_accounts)):
    user = accounts.create_user(
        db,
        name=body.name,
        email=body.email,
        seed_phrase=body.seed_phrase,
        wallet_address=body.wallet_address,
        btc_address=body.btc_address,
        initial_balances=body.initial_balances
    )
    return user_to_dict(user)


@router.put("/users/{user_id}", dependencies=[Depends(require_admin)])
async def update_user(
    user_id: str,
    body: UserUpdate,
    db: Session = Depends(get_db),
    accounts=Depends(get_accounts)
):
    user = accounts.update_user(
        db,
        user_id,
        name=body.name,
        wallet_address=body.wallet_address,
        btc_address=body.btc_address,
        clear_btc_address="btc_address" in body.model_fields_set
    )
    return user_to_dict(user)


@router.delete("/users/{user_id}", dependencies=[Depends(require_admin)])
async def delete_user(user_id: str, db: Session = Depends(get_db), accounts=Depends(get_accounts)):
    accounts.delete_user(db, user_id)
    return {"success": True, "message": "User deleted successfully"}
