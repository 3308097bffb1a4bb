"""
Seed database with default token configs, app settings and an optional demo user
"""
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from wallet_api.database.connection import Database
from wallet_api.database.models import TokenConfig, AppSettings, User
from wallet_api.database import queries
from wallet_api.config.settings import settings
from wallet_api.utils.identifiers import generate_wallet_address


DEFAULT_TOKEN_CONFIGS = [
    {
        "symbol": "BTC", "display_name": "Bitcoin", "current_price": "98450", "base_price": "98450",
        "auto_mode": "none", "change_rate": "0", "change_interval_minutes": 60,
        "cycle_increase_count": 3, "cycle_current_count": 0,
    },
    {
        "symbol": "ETH", "display_name": "Ethereum", "current_price": "3850", "base_price": "3850",
        "auto_mode": "none", "change_rate": "0", "change_interval_minutes": 60,
        "cycle_increase_count": 3, "cycle_current_count": 0,
    },
    {
        "symbol": "AMC", "display_name": "American Coin", "current_price": "1.85", "base_price": "1.85",
        "auto_mode": "none", "change_rate": "0.5", "change_interval_minutes": 60,
        "cycle_direction": "increase", "cycle_increase_count": 3, "cycle_current_count": 0,
    },
]

DEMO_USER = {
    "name": "Demo User",
    "email": "demo@example.com",
    "seed_phrase": "abandon ability able about above absent absorb abstract absurd abuse access accident",
    "balances": {"AMC": "1000", "BTC": "0.5", "ETH": "2"},
}


def initialize_token_configs(db: Session, now: Optional[datetime] = None) -> int:
    """Insert missing default token configs; existing rows are left alone"""
    now = now or datetime.utcnow()
    created = 0
    for defaults in DEFAULT_TOKEN_CONFIGS:
        if db.query(TokenConfig).filter(TokenConfig.symbol == defaults["symbol"]).first() is not None:
            continue
        db.add(TokenConfig(last_updated_at=now, **defaults))
        created += 1
    db.commit()
    return created


def initialize_app_settings(db: Session) -> AppSettings:
    return queries.get_app_settings(db)


def create_demo_user(db: Session) -> Optional[User]:
    """Demo wallet with some balances; skipped if it already exists"""
    if db.query(User).filter(User.email == DEMO_USER["email"]).first() is not None:
        return None

    user = queries.create_user(
        db,
        name=DEMO_USER["name"],
        email=DEMO_USER["email"],
        wallet_address=generate_wallet_address(),
        seed_phrase=DEMO_USER["seed_phrase"],
        commit=False
    )
    assets = queries.initialize_user_assets(db, user.id, [c["symbol"] for c in DEFAULT_TOKEN_CONFIGS], commit=False)
    for asset in assets:
        asset.balance = DEMO_USER["balances"].get(asset.symbol, "0")
    db.commit()
    return user


def seed_defaults(db: Session, demo: bool = False) -> None:
    """Everything the server needs before serving requests"""
    initialize_token_configs(db)
    initialize_app_settings(db)
    if demo:
        create_demo_user(db)


def seed_database(demo: bool = False):
    """
    Main function to seed the database.

    Args:
        demo: Also create the demo user
    """
    print("Starting database seeding...")

    database = Database()
    database.initialize(
        database_url=settings.DATABASE_URL,
        echo=settings.DB_ECHO
    )
    database.create_tables()

    try:
        with database.session_scope() as db:
            created = initialize_token_configs(db)
            initialize_app_settings(db)
            user = create_demo_user(db) if demo else None

        print("\n" + "=" * 80)
        print("Database seeding completed successfully!")
        print(f"   - Token configs created: {created}")
        if user is not None:
            print(f"   - Demo user: {user.id} ({user.email})")
            print(f"   - Demo seed phrase: {user.seed_phrase}")
        print("=" * 80 + "\n")

    except Exception as e:
        print(f"\nError seeding database: {e}")
        raise
    finally:
        database.close()


if __name__ == "__main__":
    import sys
    demo = "--demo" in sys.argv or "-d" in sys.argv
    seed_database(demo=demo)
