"""
Funding, swap and transaction endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from wallet_api.api.dependencies import get_db, get_ledger, require_admin
from wallet_api.api.schemas.wallet import (
    FundRequest,
    SwapRequest,
    TransactionCreate,
    AppSettingsUpdate,
    transaction_to_dict
)
from wallet_api.database import queries
from wallet_api.utils.amounts import format_decimal
from wallet_api.utils.exceptions import NotFoundError

router = APIRouter()


@router.post("/admin/fund", dependencies=[Depends(require_admin)])
async def fund_user(body: FundRequest, db: Session = Depends(get_db), ledger=Depends(get_ledger)):
    """
    Credit a user's balance.

    With auto-swap enabled, BTC/ETH funding is converted to the synthetic token.
    """
    result = await ledger.fund(db, body.user_id, body.currency, body.amount)
    return {
        "success": True,
        "transaction": transaction_to_dict(result.transaction),
        "swapped": result.swapped,
        "originalCurrency": result.original_currency,
        "originalAmount": format_decimal(result.original_amount),
        "finalCurrency": result.final_currency,
        "finalAmount": format_decimal(result.final_amount),
    }


@router.post("/swap")
async def swap(body: SwapRequest, db: Session = Depends(get_db), ledger=Depends(get_ledger)):
    """
    Exchange between two of a user's balances.

    Swapping the synthetic token out answers 403 with restricted: true.
    """
    result = await ledger.swap(db, body.user_id, body.from_currency, body.to_currency, body.amount)
    return {
        "success": True,
        "transaction": transaction_to_dict(result.transaction),
        "received": float(result.received),
    }


@router.get("/transactions", dependencies=[Depends(require_admin)])
async def list_transactions(skip: int = 0, limit: int = 500, db: Session = Depends(get_db)):
    return [transaction_to_dict(tx) for tx in queries.get_all_transactions(db, skip=skip, limit=limit)]


@router.post("/transactions", status_code=201, dependencies=[Depends(require_admin)])
async def create_transaction(body: TransactionCreate, db: Session = Depends(get_db), ledger=Depends(get_ledger)):
    tx = await ledger.record_transaction(
        db,
        tx_type=body.type,
        amount=body.amount,
        currency=body.currency,
        user_id=body.user_id,
        from_address=body.from_address,
        to_address=body.to_address
    )
    return transaction_to_dict(tx)


@router.get("/transactions/{transaction_id}")
async def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    """Look a transaction up by id or hash"""
    tx = queries.get_transaction(db, transaction_id)
    if tx is None:
        raise NotFoundError("Transaction", transaction_id)
    return transaction_to_dict(tx)


@router.get("/users/{user_id}/transactions")
async def get_user_transactions(user_id: str, db: Session = Depends(get_db)):
    return [transaction_to_dict(tx) for tx in queries.get_transactions_by_user(db, user_id)]


@router.get("/admin/app-settings", dependencies=[Depends(require_admin)])
async def get_app_settings(db: Session = Depends(get_db)):
    return {"autoSwapEnabled": bool(queries.get_app_settings(db).auto_swap_enabled)}


@router.put("/admin/app-settings", dependencies=[Depends(require_admin)])
async def update_app_settings(body: AppSettingsUpdate, db: Session = Depends(get_db)):
    row = queries.update_app_settings(db, auto_swap_enabled=body.auto_swap_enabled)
    return {"success": True, "autoSwapEnabled": bool(row.auto_swap_enabled)}
