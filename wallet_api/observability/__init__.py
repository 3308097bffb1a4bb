"""
Observability module for tracing, logging, and metrics
"""
from wallet_api.observability.logging import get_logger, setup_logging
from wallet_api.observability.metrics import MetricsCollector, get_metrics_collector
from wallet_api.observability.tracing import RequestContext

__all__ = [
    "get_logger",
    "setup_logging",
    "MetricsCollector",
    "get_metrics_collector",
    "RequestContext",
]
