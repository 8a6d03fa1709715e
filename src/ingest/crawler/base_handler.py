from typing import Dict, Optional

import httpx

from core.clock import SystemClock
from core.logging.logger import get_logger
from ingest.crawler.backoff import RATE_LIMIT_STATUSES, BackoffPolicy
from ingest.crawler.fetcher import FetchResult, HttpFetcher
from ingest.sources.base import SourcePlatform


class FetchHandler:
    """
    Shared fetch step for queue consumers.

    - transport error      -> bounded exponential retry
    - 403 / 429            -> re-enqueue the same item after the quota resets
    - anything else        -> returned to the subclass
    """

    def __init__(
        self,
        platforms: Dict[str, SourcePlatform],
        fetcher: HttpFetcher,
        queue,
        clock=None,
        policy: Optional[BackoffPolicy] = None,
    ):
        self.platforms = platforms
        self.fetcher = fetcher
        self.queue = queue
        self.clock = clock or SystemClock()
        self.policy = policy or BackoffPolicy()
        self.logger = get_logger(__name__)

    def platform_for(self, item: dict) -> SourcePlatform:
        return self.platforms[item["platform"]]

    async def fetch(self, item: dict) -> Optional[FetchResult]:
        """
        None means the item was rescheduled (or dropped) and the caller is done.
        """
        platform = self.platform_for(item)
        try:
            result = await self.fetcher.fetch(item["url"], platform.headers())
        except httpx.TransportError as e:
            await self.retry(item, f"transport error: {e!r}")
            return None

        if result.status in RATE_LIMIT_STATUSES:
            delay = self.policy.rate_limit_delay(result.headers, self.clock.now())
            self.logger.warning(
                f"[{platform.name}] Rate limited ({result.status}) on {item['url']}. "
                f"Retrying in {delay:.0f}s"
            )
            await self.queue.enqueue(item, delay)
            return None

        return result

    async def retry(self, item: dict, reason: str):
        attempt = item.get("attempt", 0)
        delay = self.policy.retry_delay(attempt)
        if delay is None:
            self.logger.error(
                f"[{item['platform']}] Giving up on {item['url']} after "
                f"{attempt + 1} attempts: {reason}"
            )
            await self.give_up(item, reason)
            return

        self.logger.warning(
            f"[{item['platform']}] {reason} on {item['url']} "
            f"(attempt {attempt + 1}/{self.policy.retry_max_attempts}), retrying in {delay:.0f}s"
        )
        await self.queue.enqueue({**item, "attempt": attempt + 1}, delay)

    async def give_up(self, item: dict, reason: str):
        """Called once retries are exhausted; the item is not rescheduled."""
