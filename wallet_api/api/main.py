"""
FastAPI application initialization
"""
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from wallet_api.api.routes import auth, prices, ledger, users, alerts, metrics
from wallet_api.config.settings import Settings, settings as default_settings
from wallet_api.database.connection import Database
from wallet_api.database.seed import seed_defaults
from wallet_api.observability.logging import setup_logging, get_logger
from wallet_api.observability.metrics import get_metrics_collector
from wallet_api.observability.tracing import RequestContext
from wallet_api.services.accounts import AccountService
from wallet_api.services.clock import SystemClock
from wallet_api.services.ledger import LedgerService
from wallet_api.services.market_quotes import CoinGeckoQuoteSource, MarketQuoteCache
from wallet_api.services.notifications import NotificationService
from wallet_api.services.price_alerts import PriceAlertScanner
from wallet_api.services.price_engine import PriceEngine
from wallet_api.services.scheduler import BackgroundScheduler
from wallet_api.utils.exceptions import (
    WalletServerError,
    DatabaseError,
    ValidationError,
    NotFoundError,
    AuthenticationError,
    RestrictedSwapError,
    InsufficientBalanceError,
    PolicyViolationError,
    PriceUnavailableError,
    QuoteFetchError,
    ConcurrentUpdateError
)

logger = get_logger(__name__)

# Most specific first
ERROR_STATUS_CODES = [
    (RestrictedSwapError, 403),
    (InsufficientBalanceError, 400),
    (PolicyViolationError, 403),
    (ValidationError, 400),
    (NotFoundError, 404),
    (AuthenticationError, 401),
    (PriceUnavailableError, 400),
    (ConcurrentUpdateError, 409),
    (QuoteFetchError, 502),
    (DatabaseError, 500),
]


def error_status_code(exc: WalletServerError) -> int:
    for exc_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 500


async def wallet_error_handler(request: Request, exc: WalletServerError) -> JSONResponse:
    status_code = error_status_code(exc)
    content = {"error": exc.message, "error_code": exc.error_code}
    if isinstance(exc, RestrictedSwapError):
        content["restricted"] = True
    if isinstance(exc, InsufficientBalanceError):
        content["insufficientBalance"] = True

    if status_code >= 500:
        logger.error("Request failed", extra={"path": request.url.path, "error": exc.message, "error_code": exc.error_code})
        get_metrics_collector().record_error(
            error_type=type(exc).__name__,
            error_message=exc.message,
            context={"path": request.url.path}
        )
    return JSONResponse(status_code=status_code, content=content)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies answer 400 like any other validation error"""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(
        status_code=400,
        content={"error": "; ".join(messages) or "Invalid request", "error_code": "VALIDATION_ERROR"}
    )


def create_app(
    app_settings: Optional[Settings] = None,
    clock=None,
    quote_source=None,
    notification_delivery=None,
    database: Optional[Database] = None
) -> FastAPI:
    """
    Build the application and its services.

    Every collaborator can be swapped out (tests pass a manual clock, a fake
    quote source and an in-memory database).
    """
    app_settings = app_settings or default_settings
    clock = clock or SystemClock()
    database = database or Database()

    quote_cache = MarketQuoteCache(
        quote_source or CoinGeckoQuoteSource(
            base_url=app_settings.COINGECKO_API_URL,
            api_key=app_settings.COINGECKO_API_KEY,
            timeout=app_settings.QUOTE_TIMEOUT_SECONDS
        ),
        clock,
        cache_seconds=app_settings.QUOTE_CACHE_SECONDS,
        stale_factor=app_settings.QUOTE_STALE_FACTOR
    )
    price_engine = PriceEngine(
        quote_cache,
        clock,
        synthetic_symbol=app_settings.SYNTHETIC_SYMBOL,
        min_interval_minutes=app_settings.MIN_CHANGE_INTERVAL_MINUTES
    )
    notifier = NotificationService(notification_delivery, enabled=app_settings.NOTIFICATIONS_ENABLED)
    ledger_service = LedgerService(
        price_engine,
        notifier,
        synthetic_symbol=app_settings.SYNTHETIC_SYMBOL,
        max_retries=app_settings.BALANCE_UPDATE_RETRIES
    )
    accounts = AccountService(price_engine, ledger_service.symbols)
    alert_scanner = PriceAlertScanner(price_engine, notifier, clock)
    scheduler = BackgroundScheduler()

    async def scan_alerts():
        with database.session_scope() as db:
            await alert_scanner.scan(db)

    scheduler.add_job("quote_refresh", app_settings.QUOTE_REFRESH_SECONDS, quote_cache.refresh)
    scheduler.add_job("price_alert_scan", app_settings.PRICE_ALERT_SCAN_SECONDS, scan_alerts)

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        """Open the database and start background refresh; undo both on shutdown."""
        database.initialize(database_url=app_settings.DATABASE_URL, echo=app_settings.DB_ECHO)
        database.create_tables()
        with database.session_scope() as db:
            seed_defaults(db)
        logger.info("Database initialized")

        if app_settings.BACKGROUND_TASKS_ENABLED:
            scheduler.start()

        yield

        await scheduler.stop()
        await notifier.drain()
        await quote_cache.close()
        database.close()
        logger.info("Database connections closed")

    app = FastAPI(
        title=app_settings.APP_NAME,
        description="""
    Demo crypto wallet server.

    ## Features

    * **Prices**: BTC/ETH market quotes and a synthetic AMC price with admin-configured drift
    * **Ledger**: Funding with optional auto-swap to AMC, swaps, manual transactions
    * **Accounts**: Wallet users, seed-phrase import, price alerts
    * **Observability**: Structured logging, Prometheus metrics

    ## Authentication

    Admin endpoints need the session cookie set by `POST /api/auth/login`, or:

    ```
    Authorization: Bearer <token>
    ```

    Generate a token using:
    ```bash
    python scripts/generate_admin_token.py
    ```
    """,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "auth", "description": "Admin session and wallet import"},
            {"name": "prices", "description": "Token prices and synthetic token configuration"},
            {"name": "ledger", "description": "Funding, swaps and transactions"},
            {"name": "users", "description": "Wallet users"},
            {"name": "alerts", "description": "Price alerts and notifications"},
            {"name": "metrics", "description": "Prometheus-compatible metrics"},
        ]
    )

    app.state.settings = app_settings
    app.state.clock = clock
    app.state.database = database
    app.state.quote_cache = quote_cache
    app.state.price_engine = price_engine
    app.state.notifier = notifier
    app.state.ledger = ledger_service
    app.state.accounts = accounts
    app.state.alert_scanner = alert_scanner
    app.state.scheduler = scheduler

    app.add_exception_handler(WalletServerError, wallet_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        with RequestContext(request.method, request.url.path, request.headers.get("X-Request-ID")) as ctx:
            response = await call_next(request)
            ctx.status_code = response.status_code
            response.headers["X-Request-ID"] = ctx.request_id
            return response

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if app_settings.DEBUG else app_settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, prefix="/api", tags=["auth"])
    app.include_router(prices.router, prefix="/api", tags=["prices"])
    app.include_router(ledger.router, prefix="/api", tags=["ledger"])
    app.include_router(users.router, prefix="/api", tags=["users"])
    app.include_router(alerts.router, prefix="/api", tags=["alerts"])
    app.include_router(metrics.router, prefix="/api", tags=["metrics"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "database": database.is_initialized()}

    return app


# Setup structured logging
setup_logging(
    level="DEBUG" if default_settings.DEBUG else default_settings.LOG_LEVEL,
    log_file=default_settings.LOG_FILE
)

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=default_settings.HOST, port=default_settings.PORT)
