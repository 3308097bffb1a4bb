"""
Sample data and test doubles
"""
from datetime import datetime, timedelta
from types import SimpleNamespace
from sqlalchemy.orm import Session
from wallet_api.database import queries
from wallet_api.utils.exceptions import QuoteFetchError

START_TIME = datetime(2025, 1, 1, 12, 0, 0)


class ManualClock:
    """Clock that only moves when told to"""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class FakeQuoteSource:
    """Quote source returning canned prices; set `fail` to simulate an outage"""

    def __init__(self, prices=None):
        self.prices = prices if prices is not None else {
            "BTC": {"price": 50000.0, "change24h": 1.234},
            "ETH": {"price": 2500.0, "change24h": -0.5},
        }
        self.fail = False
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        if self.fail:
            raise QuoteFetchError("Quote source unavailable")
        return {symbol: dict(values) for symbol, values in self.prices.items()}


def create_sample_user(db: Session, balances=None, email="alice@example.com", seed_phrase=None):
    """Create a user with AMC/BTC/ETH rows and the given balances"""
    user = queries.create_user(
        db,
        name="Alice",
        email=email,
        wallet_address="0x" + email.encode().hex()[:40].ljust(40, "0"),
        seed_phrase=seed_phrase or f"seed words for {email}",
        commit=False
    )
    assets = queries.initialize_user_assets(db, user.id, ["AMC", "BTC", "ETH"], commit=False)
    for asset in assets:
        asset.balance = (balances or {}).get(asset.symbol, "0")
    db.commit()
    return user


def make_config(**overrides):
    """Stand-in token config row for pure drift computations"""
    values = {
        "symbol": "AMC",
        "display_name": "American Coin",
        "current_price": "2.00",
        "base_price": "2.00",
        "last_updated_at": START_TIME,
        "auto_mode": "cycle",
        "change_rate": "10",
        "change_interval_minutes": 60,
        "cycle_direction": "increase",
        "cycle_increase_count": 3,
        "cycle_current_count": 0,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def balances_of(db: Session, user_id: str):
    return {asset.symbol: asset.balance for asset in queries.get_user_assets(db, user_id)}
