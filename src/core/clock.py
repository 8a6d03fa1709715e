import time
from datetime import datetime, timezone


class SystemClock:
    """Wall clock. Swapped for a fake in tests."""

    def now(self) -> float:
        return time.time()

    def utcnow(self) -> datetime:
        return datetime.fromtimestamp(self.now(), tz=timezone.utc)
