"""
Price alerts: user thresholds checked against current prices
"""
from typing import Any, Dict, List
from sqlalchemy.orm import Session
from wallet_api.database import queries
from wallet_api.database.models import PriceAlert
from wallet_api.observability.logging import get_logger
from wallet_api.observability.metrics import get_metrics_collector
from wallet_api.utils.amounts import parse_positive_amount, parse_price, format_decimal
from wallet_api.utils.exceptions import NotFoundError, ValidationError

logger = get_logger(__name__)

ALERT_CONDITIONS = ("above", "below")


def alert_to_dict(alert: PriceAlert) -> Dict[str, Any]:
    return {
        "id": alert.id,
        "userId": alert.user_id,
        "symbol": alert.symbol,
        "targetPrice": alert.target_price,
        "condition": alert.condition,
        "isActive": alert.is_active,
        "createdAt": alert.created_at,
        "triggeredAt": alert.triggered_at,
    }


def is_triggered(condition: str, current_price: float, target_price: float) -> bool:
    if condition == "above":
        return current_price >= target_price
    if condition == "below":
        return current_price <= target_price
    return False


def create_alert(
    db: Session,
    user_id: str,
    symbol: str,
    target_price: Any,
    condition: str,
    symbols: List[str]
) -> PriceAlert:
    if symbol not in symbols:
        raise ValidationError(f"Unsupported currency: {symbol}", "symbol")
    if condition not in ALERT_CONDITIONS:
        raise ValidationError("Condition must be 'above' or 'below'", "condition")
    target = parse_positive_amount(target_price, "targetPrice")
    if queries.get_user(db, user_id) is None:
        raise NotFoundError("User", user_id)
    return queries.create_price_alert(db, user_id, symbol, format_decimal(target), condition)


class PriceAlertScanner:
    """Fires active alerts whose condition holds at current prices"""

    def __init__(self, price_engine, notifier, clock):
        self.price_engine = price_engine
        self.notifier = notifier
        self.clock = clock

    async def scan(self, db: Session) -> int:
        """
        Check every active alert once.

        Returns:
            Number of alerts triggered. Failures are logged, never raised.
        """
        triggered = 0
        try:
            alerts = queries.get_active_price_alerts(db)
            if not alerts:
                return 0
            prices = await self.price_engine.get_prices(db)

            for alert in alerts:
                quote = prices.get(alert.symbol)
                target = parse_price(alert.target_price)
                if quote is None or target is None:
                    continue
                if not is_triggered(alert.condition, quote.price, target):
                    continue

                queries.deactivate_price_alert(db, alert.id, self.clock.now())
                triggered += 1
                logger.info(
                    "Price alert triggered",
                    extra={
                        "alert_id": alert.id,
                        "user_id": alert.user_id,
                        "symbol": alert.symbol,
                        "condition": alert.condition,
                        "target_price": target,
                        "current_price": quote.price
                    }
                )
                await self.notifier.notify_price_alert(
                    alert.user_id, alert.symbol, quote.price, target, alert.condition
                )
        except Exception as e:
            logger.error("Price alert scan failed", extra={"error": str(e), "error_type": type(e).__name__})
            get_metrics_collector().record_error(
                error_type=type(e).__name__,
                error_message=str(e),
                context={"operation": "price_alert_scan"}
            )
        return triggered

