"""
Request tracing and context management
"""
from typing import Optional
import time
from wallet_api.observability.logging import generate_request_id, set_request_id, RequestLogger, get_logger
from wallet_api.observability.metrics import get_metrics_collector

logger = get_logger(__name__)


class RequestContext:
    """Context manager for tracing one HTTP request"""

    def __init__(self, method: str, path: str, request_id: Optional[str] = None):
        self.request_id = request_id or generate_request_id()
        self.method = method
        self.path = path
        self.status_code = 500
        self.start_time = time.time()
        self.logger = RequestLogger(self.request_id, logger)

    def __enter__(self):
        set_request_id(self.request_id)
        self.logger.debug("Request started", method=self.method, path=self.path)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.time() - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(
                "Request failed",
                method=self.method,
                path=self.path,
                error=str(exc_val),
                error_type=exc_type.__name__
            )

        get_metrics_collector().record_endpoint_request(
            endpoint=self.path,
            method=self.method,
            duration_ms=duration_ms,
            status_code=self.status_code,
            request_id=self.request_id
        )
        set_request_id(None)
        return False
