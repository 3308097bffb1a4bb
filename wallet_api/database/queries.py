"""
Database query functions for users, balances, transactions, token configs,
app settings and price alerts

Write helpers take a `commit` flag; the ledger passes commit=False so that
all rows of one operation land in a single database transaction.
"""
from sqlalchemy.orm import Session
from sqlalchemy import desc, update, or_
from sqlalchemy.exc import SQLAlchemyError, OperationalError, IntegrityError
from typing import List, Optional, Dict, Any, Iterable
from datetime import datetime
from wallet_api.database.models import User, UserAsset, Transaction, TokenConfig, AppSettings, PriceAlert
from wallet_api.utils.identifiers import generate_transaction_hash, generate_transaction_id
from wallet_api.utils.exceptions import (
    DatabaseError,
    DatabaseConnectionError,
    DatabaseQueryError,
    NotFoundError,
    ValidationError
)


def _finish(db: Session, commit: bool) -> None:
    if commit:
        db.commit()
    else:
        db.flush()


# ============================================================================
# USER QUERIES
# ============================================================================

def get_user(db: Session, user_id: str) -> Optional[User]:
    """Get a single user by ID"""
    try:
        if not user_id:
            raise ValidationError("user_id is required", "user_id")

        return db.query(User).filter(User.id == user_id).first()

    except ValidationError:
        raise
    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query user: {str(e)}", e) from e


def get_user_by_seed_phrase(db: Session, seed_phrase: str) -> Optional[User]:
    """Get the user owning a (normalized) seed phrase"""
    try:
        return db.query(User).filter(User.seed_phrase == seed_phrase).first()

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query user: {str(e)}", e) from e


def get_all_users(db: Session) -> List[User]:
    """Get every user ordered by name"""
    try:
        return db.query(User).order_by(User.name).all()

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query users: {str(e)}", e) from e


def _duplicate_user_message(error: IntegrityError) -> str:
    text = str(error.orig) if error.orig is not None else str(error)
    if "users.email" in text or "email" in text:
        return "Duplicate user: Email already exists"
    if "wallet_address" in text:
        return "Duplicate user: Wallet address already exists"
    if "seed_phrase" in text:
        return "Duplicate user: Seed phrase already exists"
    return "Duplicate user: Information already exists"


def create_user(
    db: Session,
    name: str,
    email: str,
    wallet_address: str,
    seed_phrase: str,
    btc_address: Optional[str] = None,
    commit: bool = True
) -> User:
    """Insert a user; unique-constraint violations become ValidationError"""
    try:
        user = User(
            name=name,
            email=email,
            wallet_address=wallet_address,
            seed_phrase=seed_phrase,
            btc_address=btc_address
        )
        db.add(user)
        _finish(db, commit)
        return user

    except IntegrityError as e:
        db.rollback()
        raise ValidationError(_duplicate_user_message(e), "user") from e
    except OperationalError as e:
        db.rollback()
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseQueryError(f"Failed to create user: {str(e)}", e) from e


def update_user(db: Session, user_id: str, updates: Dict[str, Any], commit: bool = True) -> User:
    """Apply column updates to a user"""
    try:
        user = get_user(db, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        for column, value in updates.items():
            setattr(user, column, value)
        _finish(db, commit)
        return user

    except NotFoundError:
        raise
    except IntegrityError as e:
        db.rollback()
        raise ValidationError(_duplicate_user_message(e), "user") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseQueryError(f"Failed to update user: {str(e)}", e) from e


def delete_user(db: Session, user_id: str, commit: bool = True) -> None:
    """Delete a user; balances, transactions and alerts cascade"""
    try:
        deleted = db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
        if not deleted:
            raise NotFoundError("User", user_id)
        _finish(db, commit)

    except NotFoundError:
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseQueryError(f"Failed to delete user: {str(e)}", e) from e


# ============================================================================
# BALANCE QUERIES
# ============================================================================

def get_user_assets(db: Session, user_id: str) -> List[UserAsset]:
    """Get every balance row of a user, re-read from the database"""
    try:
        return (
            db.query(UserAsset)
            .filter(UserAsset.user_id == user_id)
            .order_by(UserAsset.symbol)
            .populate_existing()
            .all()
        )

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query assets: {str(e)}", e) from e


def get_user_asset(db: Session, user_id: str, symbol: str) -> Optional[UserAsset]:
    """Get one balance row, always re-read from the database"""
    try:
        return (
            db.query(UserAsset)
            .filter(UserAsset.user_id == user_id, UserAsset.symbol == symbol)
            .populate_existing()
            .first()
        )

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query asset: {str(e)}", e) from e


def initialize_user_assets(
    db: Session,
    user_id: str,
    symbols: Iterable[str],
    commit: bool = True
) -> List[UserAsset]:
    """Create zero balance rows for the given symbols"""
    try:
        assets = [UserAsset(user_id=user_id, symbol=symbol, balance="0") for symbol in symbols]
        db.add_all(assets)
        _finish(db, commit)
        return assets

    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseQueryError(f"Failed to initialize assets: {str(e)}", e) from e


def compare_and_set_balance(db: Session, asset_id: str, expected: str, new_balance: str) -> bool:
    """
    Write new_balance only if the row still holds `expected`.

    Returns:
        True when exactly one row was updated
    """
    try:
        result = db.execute(
            update(UserAsset)
            .where(UserAsset.id == asset_id, UserAsset.balance == expected)
            .values(balance=new_balance)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to update balance: {str(e)}", e) from e


# ============================================================================
# TRANSACTION QUERIES
# ============================================================================

def create_transaction(
    db: Session,
    type: str,
    amount: str,
    currency: str,
    user_id: Optional[str] = None,
    from_address: Optional[str] = None,
    to_address: Optional[str] = None,
    date: Optional[datetime] = None,
    commit: bool = True
) -> Transaction:
    """Append a completed transaction with a fresh id and hash"""
    try:
        tx = Transaction(
            id=generate_transaction_id(),
            user_id=user_id,
            type=type,
            amount=amount,
            currency=currency,
            status="completed",
            from_address=from_address,
            to_address=to_address,
            hash=generate_transaction_hash(),
            date=date or datetime.utcnow()
        )
        db.add(tx)
        _finish(db, commit)
        return tx

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to create transaction: {str(e)}", e) from e


def get_all_transactions(db: Session, skip: int = 0, limit: int = 500) -> List[Transaction]:
    """Get transactions, newest first"""
    try:
        if skip < 0:
            raise ValidationError("skip must be non-negative", "skip")
        if limit < 0 or limit > 1000:
            raise ValidationError("limit must be between 0 and 1000", "limit")

        return db.query(Transaction).order_by(desc(Transaction.date)).offset(skip).limit(limit).all()

    except ValidationError:
        raise
    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query transactions: {str(e)}", e) from e


def get_transactions_by_user(db: Session, user_id: str) -> List[Transaction]:
    """Get a user's transactions, newest first"""
    try:
        return (
            db.query(Transaction)
            .filter(Transaction.user_id == user_id)
            .order_by(desc(Transaction.date))
            .all()
        )

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query transactions: {str(e)}", e) from e


def get_transaction(db: Session, id_or_hash: str) -> Optional[Transaction]:
    """Look a transaction up by id, falling back to its hash"""
    try:
        return (
            db.query(Transaction)
            .filter(or_(Transaction.id == id_or_hash, Transaction.hash == id_or_hash))
            .order_by(desc(Transaction.id == id_or_hash))
            .first()
        )

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query transaction: {str(e)}", e) from e


def count_transactions(db: Session) -> int:
    try:
        return db.query(Transaction).count()
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to count transactions: {str(e)}", e) from e


# ============================================================================
# TOKEN CONFIG QUERIES
# ============================================================================

def get_all_token_configs(db: Session) -> List[TokenConfig]:
    """Get the price state of every tracked symbol"""
    try:
        return db.query(TokenConfig).order_by(TokenConfig.symbol).all()

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query token configs: {str(e)}", e) from e


def get_token_config(db: Session, symbol: str) -> Optional[TokenConfig]:
    try:
        return db.query(TokenConfig).filter(TokenConfig.symbol == symbol).populate_existing().first()

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query token config: {str(e)}", e) from e


def update_token_config(
    db: Session,
    symbol: str,
    updates: Dict[str, Any],
    commit: bool = True
) -> TokenConfig:
    """Apply column updates to a token config"""
    try:
        config = get_token_config(db, symbol)
        if config is None:
            raise NotFoundError("Token config", symbol)

        for column, value in updates.items():
            setattr(config, column, value)
        _finish(db, commit)
        return config

    except NotFoundError:
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseQueryError(f"Failed to update token config: {str(e)}", e) from e


# ============================================================================
# APP SETTINGS QUERIES
# ============================================================================

def get_app_settings(db: Session) -> AppSettings:
    """Get the single settings row, creating it on first use"""
    try:
        row = db.query(AppSettings).filter(AppSettings.id == "1").first()
        if row is None:
            row = AppSettings(id="1", auto_swap_enabled=False)
            db.add(row)
            db.commit()
        return row

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseQueryError(f"Failed to query app settings: {str(e)}", e) from e


def update_app_settings(db: Session, auto_swap_enabled: Optional[bool] = None) -> AppSettings:
    try:
        row = get_app_settings(db)
        if auto_swap_enabled is not None:
            row.auto_swap_enabled = auto_swap_enabled
        row.updated_at = datetime.utcnow()
        db.commit()
        return row

    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseQueryError(f"Failed to update app settings: {str(e)}", e) from e


# ============================================================================
# PRICE ALERT QUERIES
# ============================================================================

def get_price_alerts_by_user(db: Session, user_id: str) -> List[PriceAlert]:
    try:
        return (
            db.query(PriceAlert)
            .filter(PriceAlert.user_id == user_id)
            .order_by(desc(PriceAlert.created_at))
            .all()
        )

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query price alerts: {str(e)}", e) from e


def get_active_price_alerts(db: Session) -> List[PriceAlert]:
    try:
        return db.query(PriceAlert).filter(PriceAlert.is_active.is_(True)).all()

    except OperationalError as e:
        raise DatabaseConnectionError("Database connection failed", e) from e
    except SQLAlchemyError as e:
        raise DatabaseQueryError(f"Failed to query price alerts: {str(e)}", e) from e


def create_price_alert(
    db: Session,
    user_id: str,
    symbol: str,
    target_price: str,
    condition: str
) -> PriceAlert:
    try:
        alert = PriceAlert(
            user_id=user_id,
            symbol=symbol,
            target_price=target_price,
            condition=condition,
            is_active=True,
            created_at=datetime.utcnow()
        )
        db.add(alert)
        db.commit()
        return alert

    except IntegrityError as e:
        db.rollback()
        raise NotFoundError("User", user_id) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseQueryError(f"Failed to create price alert: {str(e)}", e) from e


def deactivate_price_alert(db: Session, alert_id: str, triggered_at: datetime) -> None:
    try:
        db.query(PriceAlert).filter(PriceAlert.id == alert_id).update(
            {"is_active": False, "triggered_at": triggered_at},
            synchronize_session="fetch"
        )
        db.commit()

    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseQueryError(f"Failed to update price alert: {str(e)}", e) from e


def delete_price_alert(db: Session, alert_id: str) -> None:
    try:
        deleted = db.query(PriceAlert).filter(PriceAlert.id == alert_id).delete(synchronize_session=False)
        if not deleted:
            raise NotFoundError("Price alert", alert_id)
        db.commit()

    except NotFoundError:
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseQueryError(f"Failed to delete price alert: {str(e)}", e) from e
