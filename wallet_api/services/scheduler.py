"""
Background refresh loops: market quotes and price-alert scans
"""
import asyncio
from typing import Awaitable, Callable, List, Optional
from wallet_api.observability.logging import get_logger

logger = get_logger(__name__)


class BackgroundScheduler:
    """Runs each registered job on its own fixed interval until stopped"""

    def __init__(self):
        self._jobs: List[tuple] = []
        self._tasks: List[asyncio.Task] = []

    def add_job(self, name: str, interval_seconds: float, job: Callable[[], Awaitable[object]]) -> None:
        self._jobs.append((name, interval_seconds, job))

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def _run(self, name: str, interval_seconds: float, job: Callable[[], Awaitable[object]]) -> None:
        while True:
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Background job failed",
                    extra={"job": name, "error": str(e), "error_type": type(e).__name__}
                )
            await asyncio.sleep(interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        for name, interval_seconds, job in self._jobs:
            self._tasks.append(asyncio.create_task(self._run(name, interval_seconds, job), name=name))
            logger.info("Background job started", extra={"job": name, "interval_seconds": interval_seconds})

    async def stop(self, timeout: Optional[float] = 5.0) -> None:
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.wait(self._tasks, timeout=timeout)
        self._tasks = []
        logger.info("Background jobs stopped")
