"""
Configuration settings
"""
from pydantic_settings import BaseSettings
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings"""

    # Server settings
    APP_NAME: str = "American Coin Wallet"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # CORS settings
    CORS_ORIGINS: List[str] = ["*"]

    # Database settings - SQLite file by default, any SQLAlchemy URL works
    DATABASE_URL: str = "sqlite:///./data/wallet.db"
    DB_ECHO: bool = False  # Set to True to log SQL queries

    # Admin session settings
    ADMIN_PASSWORD: str = "change-me"
    JWT_SECRET_KEY: str = "your-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    ADMIN_SESSION_EXPIRE_MINUTES: int = 60 * 24
    ADMIN_SESSION_COOKIE: str = "wallet_admin_session"
    ADMIN_SESSION_COOKIE_SECURE: bool = False  # Set to True when served over HTTPS

    # Market quote settings (BTC / ETH)
    COINGECKO_API_URL: str = "https://api.coingecko.com/api/v3"
    COINGECKO_API_KEY: Optional[str] = None
    QUOTE_TIMEOUT_SECONDS: float = 10.0
    QUOTE_CACHE_SECONDS: int = 60
    QUOTE_STALE_FACTOR: int = 2  # Cached quotes up to CACHE * FACTOR seconds old survive a failed fetch

    # Synthetic token settings
    SYNTHETIC_SYMBOL: str = "AMC"
    MIN_CHANGE_INTERVAL_MINUTES: int = 1

    # Ledger settings
    BALANCE_UPDATE_RETRIES: int = 3

    # Background tasks
    BACKGROUND_TASKS_ENABLED: bool = True
    QUOTE_REFRESH_SECONDS: int = 60
    PRICE_ALERT_SCAN_SECONDS: int = 60

    # Notifications
    NOTIFICATIONS_ENABLED: bool = False

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None  # Path to log file (e.g., "logs/app.log"). If None, logs only go to stdout.

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
