import os
from datetime import datetime, timezone

import pytest

# settings are built at import time
os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("GITHUB_TOKEN", "test-github-token")
os.environ.setdefault("CODEBERG_TOKEN", "test-codeberg-token")


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.current = now

    def now(self) -> float:
        return self.current

    def utcnow(self) -> datetime:
        return datetime.fromtimestamp(self.current, tz=timezone.utc)

    def advance(self, seconds: float):
        self.current += seconds


class RecordingQueue:
    """In-memory stand-in for DelayQueue.enqueue."""

    def __init__(self, accept: bool = True):
        self.enqueued = []
        self.accept = accept

    async def enqueue(self, item: dict, delay: float = 0) -> bool:
        self.enqueued.append((item, delay))
        return self.accept

    @property
    def items(self):
        return [item for item, _ in self.enqueued]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repo_queue():
    return RecordingQueue()


@pytest.fixture
def manifest_queue():
    return RecordingQueue()


@pytest.fixture
def rejecting_queue():
    """Every enqueue coalesces with an already-pending job."""
    return RecordingQueue(accept=False)
