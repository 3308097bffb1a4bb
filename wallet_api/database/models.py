"""
SQLAlchemy database models
Money and prices are stored as text to keep every digit the writer produced
"""
import uuid
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index
from datetime import datetime
from wallet_api.database.connection import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Wallet owners provisioned by the admin"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False, unique=True)
    wallet_address = Column(String(64), nullable=False, unique=True)
    seed_phrase = Column(String(512), nullable=False, unique=True)
    btc_address = Column(String(128), nullable=True)


class UserAsset(Base):
    """One balance row per user and symbol"""
    __tablename__ = "user_assets"
    __table_args__ = (
        Index("user_assets_user_symbol_idx", "user_id", "symbol", unique=True),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    symbol = Column(String(10), nullable=False)
    balance = Column(String(64), nullable=False, default="0")


class Transaction(Base):
    """Append-only movement record"""
    __tablename__ = "transactions"

    id = Column(String(16), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    type = Column(String(16), nullable=False)  # send | receive | buy | swap
    amount = Column(String(64), nullable=False)
    currency = Column(String(10), nullable=False, index=True)
    status = Column(String(16), nullable=False, default="completed")
    date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    from_address = Column("from", String(128), nullable=True)
    to_address = Column("to", String(128), nullable=True)
    hash = Column(String(66), nullable=False, unique=True)


class TokenConfig(Base):
    """Price state per tracked symbol"""
    __tablename__ = "token_configs"

    symbol = Column(String(10), primary_key=True)
    display_name = Column(String(100), nullable=False)
    current_price = Column(String(64), nullable=False)
    base_price = Column(String(64), nullable=False)
    last_updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    auto_mode = Column(String(16), nullable=False, default="none")  # none | increase | decrease | cycle
    change_rate = Column(String(32), nullable=False, default="0")  # percent per interval
    change_interval_minutes = Column(Integer, nullable=False, default=60)
    cycle_direction = Column(String(16), nullable=True, default="increase")
    cycle_increase_count = Column(Integer, nullable=True, default=3)
    cycle_current_count = Column(Integer, nullable=True, default=0)


class AppSettings(Base):
    """Single-row global switches"""
    __tablename__ = "app_settings"

    id = Column(String(8), primary_key=True, default="1")
    auto_swap_enabled = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class PriceAlert(Base):
    """User price threshold watched by the alert scanner"""
    __tablename__ = "price_alerts"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    symbol = Column(String(10), nullable=False, index=True)
    target_price = Column(String(64), nullable=False)
    condition = Column(String(8), nullable=False)  # above | below
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    triggered_at = Column(DateTime, nullable=True)
