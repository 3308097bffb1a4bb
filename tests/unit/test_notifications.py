"""
Unit tests for the notification service
"""
import pytest
from unittest.mock import AsyncMock
from wallet_api.observability.metrics import get_metrics_collector
from wallet_api.services.notifications import (
    NotificationService,
    build_transaction_payload,
    build_price_alert_payload
)


def test_transaction_payload_wording():
    assert build_transaction_payload("receive", "1.5", "ETH")["body"] == "You received 1.5 ETH"
    assert build_transaction_payload("send", "2", "BTC")["body"] == "You sent 2 BTC"
    assert build_transaction_payload("swap", "0.1", "BTC")["body"] == "You swapped 0.1 BTC"
    assert build_transaction_payload("buy", "3", "AMC", status="pending")["title"] == "Transaction Update"


def test_price_alert_payload():
    payload = build_price_alert_payload("ETH", 2400.0, 2500.0, "below")
    assert payload["title"] == "ETH Price Alert"
    assert payload["body"] == "ETH has fallen below your target of $2500.00. Current price: $2400.00"
    assert payload["data"]["condition"] == "below"


@pytest.mark.asyncio
async def test_send_uses_delivery():
    delivery = AsyncMock()
    service = NotificationService(delivery)

    assert await service.send("user-1", {"title": "Hi"}) is True
    delivery.assert_awaited_once_with("user-1", {"title": "Hi"})


@pytest.mark.asyncio
async def test_unconfigured_service_skips():
    assert await NotificationService().send("user-1", {"title": "Hi"}) is False

    delivery = AsyncMock()
    disabled = NotificationService(delivery, enabled=False)
    assert await disabled.send("user-1", {"title": "Hi"}) is False
    delivery.assert_not_awaited()


@pytest.mark.asyncio
async def test_delivery_failure_is_contained():
    delivery = AsyncMock(side_effect=ConnectionError("push service down"))
    service = NotificationService(delivery)

    assert await service.notify_transaction("user-1", "receive", "1", "BTC") is False
    assert get_metrics_collector().get_metrics()["error_ConnectionError"]["count"] == 1


@pytest.mark.asyncio
async def test_dispatch_and_drain():
    delivery = AsyncMock()
    service = NotificationService(delivery)

    service.dispatch(service.notify_transaction("user-1", "send", "1", "ETH"))
    service.dispatch(service.notify_transaction("user-2", "send", "2", "ETH"))
    await service.drain()

    assert delivery.await_count == 2
