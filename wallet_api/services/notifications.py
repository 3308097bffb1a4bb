"""
User notifications for transactions, price alerts and admin messages

Delivery itself (push, email) lives outside this service: it is handed an
async callable `delivery(user_id, payload)`. Without one, notifications are
logged and skipped. Delivery failures are logged and never reach the caller.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Set
from wallet_api.observability.logging import get_logger
from wallet_api.observability.metrics import get_metrics_collector

logger = get_logger(__name__)

Delivery = Callable[[str, Dict[str, Any]], Awaitable[Any]]

_TYPE_LABELS = {"receive": "received", "send": "sent", "swap": "swapped", "buy": "bought"}


def build_transaction_payload(tx_type: str, amount: str, currency: str, status: str = "completed") -> Dict[str, Any]:
    label = _TYPE_LABELS.get(tx_type, tx_type)
    return {
        "title": "Transaction Completed" if status == "completed" else "Transaction Update",
        "body": f"You {label} {amount} {currency}",
        "data": {
            "type": "transaction",
            "transactionType": tx_type,
            "amount": amount,
            "currency": currency,
            "status": status,
        },
    }


def build_price_alert_payload(symbol: str, current_price: float, target_price: float, condition: str) -> Dict[str, Any]:
    direction = "risen above" if condition == "above" else "fallen below"
    return {
        "title": f"{symbol} Price Alert",
        "body": f"{symbol} has {direction} your target of ${target_price:.2f}. Current price: ${current_price:.2f}",
        "data": {
            "type": "price_alert",
            "symbol": symbol,
            "currentPrice": current_price,
            "targetPrice": target_price,
            "condition": condition,
        },
    }


class NotificationService:
    """Builds notification payloads and hands them to the delivery callable"""

    def __init__(self, delivery: Optional[Delivery] = None, enabled: bool = True):
        self.delivery = delivery
        self.enabled = enabled
        self._pending: Set[asyncio.Task] = set()

    @property
    def configured(self) -> bool:
        return self.enabled and self.delivery is not None

    async def send(self, user_id: str, payload: Dict[str, Any]) -> bool:
        """
        Deliver one payload.

        Returns:
            True when the delivery callable completed, False when skipped or failed
        """
        if not self.configured:
            logger.info(
                "Notifications not configured, skipping",
                extra={"user_id": user_id, "title": payload.get("title")}
            )
            return False

        try:
            await self.delivery(user_id, payload)
            return True
        except Exception as e:
            logger.error(
                "Failed to deliver notification",
                extra={"user_id": user_id, "title": payload.get("title"), "error": str(e)}
            )
            get_metrics_collector().record_error(
                error_type=type(e).__name__,
                error_message=str(e),
                context={"operation": "notification_delivery", "user_id": user_id}
            )
            return False

    async def notify_transaction(
        self,
        user_id: str,
        tx_type: str,
        amount: str,
        currency: str,
        status: str = "completed"
    ) -> bool:
        return await self.send(user_id, build_transaction_payload(tx_type, amount, currency, status))

    async def notify_price_alert(
        self,
        user_id: str,
        symbol: str,
        current_price: float,
        target_price: float,
        condition: str
    ) -> bool:
        return await self.send(
            user_id,
            build_price_alert_payload(symbol, current_price, target_price, condition)
        )

    def dispatch(self, coro: Awaitable[Any]) -> asyncio.Task:
        """Run a notification in the background; the caller does not wait for it"""
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for background notifications (shutdown, tests)"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
