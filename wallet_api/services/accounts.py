"""
Account management: wallet users, their balances and wallet import
"""
import re
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from wallet_api.database import queries
from wallet_api.database.models import User, UserAsset
from wallet_api.observability.logging import get_logger
from wallet_api.utils.amounts import parse_decimal, format_decimal
from wallet_api.utils.identifiers import generate_wallet_address, normalize_seed_phrase
from wallet_api.utils.exceptions import InvalidInputError, NotFoundError, ValidationError

logger = get_logger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "walletAddress": user.wallet_address,
        "btcAddress": user.btc_address,
        "seedPhrase": user.seed_phrase,
    }


class AccountService:
    """Creates users and reports their balances at current prices"""

    def __init__(self, price_engine, symbols: List[str]):
        self.price_engine = price_engine
        self.symbols = list(symbols)

    def _value_assets(self, assets: List[UserAsset], prices: Dict[str, Any]) -> Dict[str, Any]:
        valued = []
        total = 0.0
        for asset in assets:
            quote = prices.get(asset.symbol)
            balance = float(parse_decimal(asset.balance) or 0)
            price = quote.price if quote else 0
            valued.append({
                "symbol": asset.symbol,
                "name": quote.name if quote else asset.symbol,
                "balance": balance,
                "price": price,
                "change24h": quote.change24h if quote else 0,
            })
            total += balance * price
        return {"assets": valued, "totalBalanceUSD": total}

    async def list_users(self, db: Session) -> List[Dict[str, Any]]:
        """Every user with valued balances"""
        prices = await self.price_engine.get_prices(db)
        result = []
        for user in queries.get_all_users(db):
            summary = user_to_dict(user)
            summary.update(self._value_assets(queries.get_user_assets(db, user.id), prices))
            result.append(summary)
        return result

    async def get_user_summary(self, db: Session, user_id: str) -> Dict[str, Any]:
        user = queries.get_user(db, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        prices = await self.price_engine.get_prices(db)
        summary = user_to_dict(user)
        summary.update(self._value_assets(queries.get_user_assets(db, user.id), prices))
        return summary

    def _initial_balances(self, initial_balances: Optional[Dict[str, Any]]) -> Dict[str, str]:
        balances: Dict[str, str] = {}
        for symbol, raw in (initial_balances or {}).items():
            if symbol not in self.symbols:
                raise InvalidInputError("initialBalances", symbol, "Unsupported currency")
            if raw in (None, ""):
                continue
            value = parse_decimal(raw)
            if value is None or value < 0:
                raise InvalidInputError(f"initialBalances.{symbol}", raw, "Must be a non-negative number")
            if value > 0:
                balances[symbol] = format_decimal(value)
        return balances

    def create_user(
        self,
        db: Session,
        name: str,
        email: str,
        seed_phrase: str,
        wallet_address: Optional[str] = None,
        btc_address: Optional[str] = None,
        initial_balances: Optional[Dict[str, Any]] = None
    ) -> User:
        """
        Create a user with a zero balance row per tracked symbol.

        Raises:
            ValidationError: Missing fields, bad email, or a duplicate
                email / wallet address / seed phrase
        """
        if not name or not email or not seed_phrase:
            raise ValidationError("Name, email, and seed phrase are required")

        email = email.strip().lower()
        if not _EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format", "email")

        balances = self._initial_balances(initial_balances)

        try:
            user = queries.create_user(
                db,
                name=name.strip(),
                email=email,
                wallet_address=wallet_address or generate_wallet_address(),
                seed_phrase=normalize_seed_phrase(seed_phrase),
                btc_address=btc_address or None,
                commit=False
            )
            assets = queries.initialize_user_assets(db, user.id, self.symbols, commit=False)
            for asset in assets:
                if asset.symbol in balances:
                    asset.balance = balances[asset.symbol]
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("User created", extra={"user_id": user.id, "initial_balances": balances})
        return user

    def update_user(
        self,
        db: Session,
        user_id: str,
        name: Optional[str] = None,
        wallet_address: Optional[str] = None,
        btc_address: Optional[str] = None,
        clear_btc_address: bool = False
    ) -> User:
        updates: Dict[str, Any] = {}
        if name:
            updates["name"] = name
        if wallet_address:
            updates["wallet_address"] = wallet_address
        if btc_address is not None or clear_btc_address:
            updates["btc_address"] = btc_address or None
        return queries.update_user(db, user_id, updates)

    def delete_user(self, db: Session, user_id: str) -> None:
        """Delete a user together with their balances, transactions and alerts"""
        queries.delete_user(db, user_id)
        logger.info("User deleted", extra={"user_id": user_id})

    def import_wallet(self, db: Session, seed_phrase: str) -> User:
        """Find the wallet a seed phrase belongs to"""
        if not seed_phrase or not seed_phrase.strip():
            raise ValidationError("Seed phrase is required", "seedPhrase")

        user = queries.get_user_by_seed_phrase(db, normalize_seed_phrase(seed_phrase))
        if user is None:
            raise NotFoundError("Wallet for this seed phrase")
        return user
