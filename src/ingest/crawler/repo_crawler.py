from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from ingest.crawler.backoff import BackoffPolicy
from ingest.crawler.base_handler import FetchHandler
from ingest.crawler.date_windows import DateWindowCursor
from ingest.crawler.fetcher import FetchResult, HttpFetcher
from ingest.crawler.pagination import parse_next_link
from ingest.models import RepoRef, Repository
from ingest.sources.base import SourcePlatform, UnsupportedSearchError
from ingest.sources.filters import is_ecosystem_repo
from core.logging.logger import get_logger


def search_item(platform: str, mode: str, url: str) -> dict:
    return {"kind": "search", "platform": platform, "mode": mode, "url": url, "attempt": 0}


def manifest_item(ref: RepoRef, url: str) -> dict:
    return {
        "kind": "manifest",
        "platform": ref.platform,
        "full_name": ref.full_name,
        "default_branch": ref.default_branch,
        "url": url,
        "attempt": 0,
    }


class RepoCrawler(FetchHandler):
    """
    Consumer of the repos queue.

    Each search page is fetched, its repositories normalized and upserted, the
    next page (Link rel="next") enqueued after page_delay, and a manifest fetch
    scheduled for every ecosystem repo whose manifest is stale.
    """

    def __init__(
        self,
        platforms: Dict[str, SourcePlatform],
        fetcher: HttpFetcher,
        queue,
        manifest_queue,
        store,
        clock=None,
        policy: Optional[BackoffPolicy] = None,
        windows: Optional[DateWindowCursor] = None,
        excluded_keywords: Sequence[str] = (),
        manifest_max_age: int = 3 * 24 * 60 * 60,
    ):
        super().__init__(platforms, fetcher, queue, clock, policy)
        self.manifest_queue = manifest_queue
        self.store = store
        self.windows = windows or DateWindowCursor(clock=self.clock)
        self.excluded_keywords = list(excluded_keywords)
        self.manifest_max_age = manifest_max_age
        self.logger = get_logger(__name__)

    # ---------------------------------------------------------------------
    # traversal entry points
    # ---------------------------------------------------------------------
    async def start_top(self, platform_name: str):
        platform = self.platforms[platform_name]
        await self.queue.enqueue(search_item(platform.name, "top", platform.top_url()))
        self.logger.info(f"[{platform.name}] Scheduled top crawl")

    async def start_all(self, platform_name: str):
        platform = self.platforms[platform_name]
        if not platform.supports_date_windows:
            raise UnsupportedSearchError(f"{platform.name} search has no creation-date filter")
        start, end = self.windows.next_window()
        await self.queue.enqueue(search_item(platform.name, "all", platform.window_url(start, end)))
        self.logger.info(f"[{platform.name}] Scheduled window crawl {start.date()}..{end.date()}")

    async def start_recent(self, platform_name: str, hours: int = 24):
        platform = self.platforms[platform_name]
        end = self.clock.utcnow()
        start = end - timedelta(hours=hours)
        await self.queue.enqueue(search_item(platform.name, "recent", platform.window_url(start, end)))
        self.logger.info(f"[{platform.name}] Scheduled recent crawl (last {hours}h)")

    # ---------------------------------------------------------------------
    # queue consumer
    # ---------------------------------------------------------------------
    async def handle_search(self, item: dict):
        result = await self.fetch(item)
        if result is None:
            return

        if not result.ok:
            await self.retry(item, f"HTTP {result.status}")
            return

        platform = self.platform_for(item)
        repos = self._map_page(platform, result)
        await self.store.upsert_repositories(repos)

        next_url = parse_next_link(result.headers.get("link"))
        if next_url:
            await self.queue.enqueue({**item, "url": next_url, "attempt": 0}, self.policy.page_delay)

        scheduled = await self._schedule_manifests(platform, repos)
        self.logger.info(
            f"[{platform.name}] [{item['mode']}] {len(repos)} repos from {item['url']} "
            f"({scheduled} manifests scheduled{', more pages' if next_url else ''})"
        )

    def _map_page(self, platform: SourcePlatform, result: FetchResult) -> List[Repository]:
        repos: List[Repository] = []
        for raw in platform.extract_items(result.json()):
            try:
                repos.append(platform.map_repo(raw))
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                self.logger.warning(f"[{platform.name}] Skipping malformed item {raw.get('full_name')!r}: {e}")
        return repos

    async def _schedule_manifests(self, platform: SourcePlatform, repos: List[Repository]) -> int:
        refs = [
            RepoRef.of(repo)
            for repo in repos
            if is_ecosystem_repo(repo, self.excluded_keywords)
        ]
        if not refs:
            return 0

        cutoff = int(self.clock.now()) - self.manifest_max_age
        fresh = await self.store.fresh_manifest_keys(refs, cutoff)

        scheduled = 0
        for ref in refs:
            if (ref.platform, ref.full_name) in fresh:
                continue
            if await self.manifest_queue.enqueue(manifest_item(ref, platform.manifest_url(ref))):
                scheduled += 1
        return scheduled
