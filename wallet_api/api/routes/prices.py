"""
Token price endpoints and admin token configuration
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from wallet_api.api.dependencies import get_db, get_price_engine, require_admin
from wallet_api.api.schemas.wallet import TokenConfigUpdate, token_config_to_dict
from wallet_api.database import queries

router = APIRouter()


@router.get("/prices")
async def get_prices(db: Session = Depends(get_db), engine=Depends(get_price_engine)):
    """
    Current price of every tracked symbol

    Response: {symbol: {price, name, change24h}}. Market symbols without a
    usable quote are omitted.
    """
    prices = await engine.get_prices(db)
    return {symbol: price.to_dict() for symbol, price in prices.items()}


@router.get("/admin/token-configs", dependencies=[Depends(require_admin)])
async def list_token_configs(db: Session = Depends(get_db), engine=Depends(get_price_engine)):
    engine.apply_drift(db)
    return [token_config_to_dict(config) for config in queries.get_all_token_configs(db)]


@router.put("/admin/token-configs/{symbol}", dependencies=[Depends(require_admin)])
async def update_token_config(
    symbol: str,
    body: TokenConfigUpdate,
    db: Session = Depends(get_db),
    engine=Depends(get_price_engine)
):
    """Partial update; only the synthetic token can be configured"""
    config = engine.update_config(db, symbol.upper(), body.to_column_updates())
    return token_config_to_dict(config)
