from typing import Dict, Optional, Sequence

from pydantic import ValidationError

from ingest.crawler.backoff import BackoffPolicy
from ingest.crawler.base_handler import FetchHandler
from ingest.crawler.fetcher import HttpFetcher
from ingest.crawler.repo_crawler import manifest_item
from ingest.deps.extractor import extract_manifest
from ingest.models import ManifestSnapshot, RepoRef
from ingest.sources.base import SourcePlatform
from ingest.zon.parser import parse_zon
from core.logging.logger import get_logger


def build_snapshot(content: str) -> ManifestSnapshot:
    """
    Raw build.zig.zon text -> snapshot. Raises ValueError (ZonSyntaxError,
    pydantic ValidationError) for content that cannot be understood.
    """
    return extract_manifest(parse_zon(content))


class ManifestWorker(FetchHandler):
    """
    Consumer of the manifests queue, plus the periodic refresh sweep and the
    offline rebuild over stored manifest content.
    """

    def __init__(
        self,
        platforms: Dict[str, SourcePlatform],
        fetcher: HttpFetcher,
        queue,
        store,
        clock=None,
        policy: Optional[BackoffPolicy] = None,
        excluded_keywords: Sequence[str] = (),
        max_age: int = 3 * 24 * 60 * 60,
        batch_size: int = 20,
    ):
        super().__init__(platforms, fetcher, queue, clock, policy)
        self.store = store
        self.excluded_keywords = list(excluded_keywords)
        self.max_age = max_age
        self.batch_size = batch_size
        self.logger = get_logger(__name__)

    async def handle_manifest(self, item: dict):
        result = await self.fetch(item)
        if result is None:
            return

        ref = self._ref(item)
        fetched_at = int(self.clock.now())

        if result.status == 404:
            await self.store.mark_manifest_absent(ref, fetched_at)
            self.logger.info(f"[{ref.platform}:{ref.full_name}] No build.zig.zon")
            return

        if not result.ok:
            await self.retry(item, f"HTTP {result.status}")
            return

        await self._store_content(ref, result.text, fetched_at)

    async def give_up(self, item: dict, reason: str):
        # counts as a fetch so the refresh sweep waits max_age before retrying
        await self.store.record_fetch_failure(self._ref(item), reason, int(self.clock.now()))

    @staticmethod
    def _ref(item: dict) -> RepoRef:
        return RepoRef(
            platform=item["platform"],
            full_name=item["full_name"],
            default_branch=item["default_branch"],
        )

    async def _store_content(self, ref: RepoRef, content: str, fetched_at: int) -> bool:
        try:
            snapshot = build_snapshot(content)
        except (ValueError, ValidationError) as e:
            self.logger.warning(f"[{ref.platform}:{ref.full_name}] Unparseable build.zig.zon: {e}")
            await self.store.record_manifest_error(ref, content, str(e), fetched_at)
            return False

        await self.store.save_manifest(ref, snapshot, content, fetched_at)
        return True

    async def schedule_stale(self) -> int:
        """
        Enqueue a manifest fetch for the most-starred repositories whose
        manifest is missing or older than max_age.
        """
        cutoff = int(self.clock.now()) - self.max_age
        refs = await self.store.select_manifest_candidates(cutoff, self.batch_size, self.excluded_keywords)

        scheduled = 0
        for ref in refs:
            platform = self.platforms[ref.platform]
            if await self.queue.enqueue(manifest_item(ref, platform.manifest_url(ref))):
                scheduled += 1

        if scheduled:
            self.logger.info(f"Scheduled {scheduled} manifest refreshes")
        return scheduled

    async def rebuild(self) -> Dict[str, int]:
        """
        Re-derive snapshots and edges from stored content without fetching.
        """
        stats = {"rebuilt": 0, "failed": 0}
        async for ref, content, fetched_at in self.store.iter_stored_manifests():
            if await self._store_content(ref, content, fetched_at):
                stats["rebuilt"] += 1
            else:
                stats["failed"] += 1

        self.logger.info(f"Rebuild complete: {stats['rebuilt']} rebuilt, {stats['failed']} failed")
        return stats
