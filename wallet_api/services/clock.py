"""
Clock abstraction so drift and quote freshness can be tested deterministically
"""
from datetime import datetime


class SystemClock:
    """Wall clock in naive UTC, matching the timestamps stored in the database"""

    def now(self) -> datetime:
        return datetime.utcnow()
