import asyncio
from typing import Awaitable, Callable, Dict, List

import httpx

from core.logging.logger import get_logger
from ingest.crawler.manifest_worker import ManifestWorker
from ingest.crawler.repo_crawler import RepoCrawler
from ingest.queue.delay_queue import DelayQueue
from ingest.queue.queue_monitor import monitor_queues_periodically
from ingest.sources.base import SourcePlatform

Sweep = Callable[[], Awaitable[object]]


class IngestService:
    """
    Long-running crawl service: two queue consumers (repos, manifests) plus
    the periodic sweeps that feed them.
    """

    def __init__(
        self,
        platforms: Dict[str, SourcePlatform],
        http: httpx.AsyncClient,
        repo_queue: DelayQueue,
        manifest_queue: DelayQueue,
        crawler: RepoCrawler,
        manifest_worker: ManifestWorker,
        settings,
    ):
        self.platforms = platforms
        self.http = http
        self.repo_queue = repo_queue
        self.manifest_queue = manifest_queue
        self.crawler = crawler
        self.manifest_worker = manifest_worker
        self.settings = settings
        self.logger = get_logger(__name__)
        self.shutdown_requested = False

    async def verify_credentials(self):
        """Raises CredentialsError if any platform rejects its token."""
        for platform in self.platforms.values():
            await platform.check_credentials(self.http)

    async def restore_stale_jobs(self):
        await self.repo_queue.restore_stale_jobs()
        await self.manifest_queue.restore_stale_jobs()

    def sweeps(self) -> List[tuple]:
        s = self.settings
        return [
            ("github top", s.TOP_SWEEP_INTERVAL, lambda: self.crawler.start_top("github")),
            ("codeberg top", s.CODEBERG_TOP_SWEEP_INTERVAL, lambda: self.crawler.start_top("codeberg")),
            ("github recent", s.RECENT_SWEEP_INTERVAL, lambda: self.crawler.start_recent("github")),
            ("github all", s.ALL_SWEEP_INTERVAL, lambda: self.crawler.start_all("github")),
            ("manifest refresh", s.MANIFEST_SWEEP_INTERVAL, self.manifest_worker.schedule_stale),
        ]

    async def _sleep(self, seconds: float):
        remaining = seconds
        while remaining > 0 and not self.shutdown_requested:
            step = min(1.0, remaining)
            await asyncio.sleep(step)
            remaining -= step

    async def run_periodically(self, name: str, interval: float, sweep: Sweep):
        """
        Run `sweep` now and then every `interval` seconds. A failing sweep is
        logged and retried on the next tick.
        """
        self.logger.info(f"[{name}] Sweep started (interval: {interval}s)")
        while not self.shutdown_requested:
            try:
                await sweep()
            except Exception as e:
                self.logger.error(f"[{name}] Sweep failed: {e}", exc_info=True)
            await self._sleep(interval)
        self.logger.info(f"[{name}] Sweep stopped")

    def request_shutdown(self):
        self.logger.info("Shutdown requested")
        self.shutdown_requested = True
        self.repo_queue.request_shutdown()
        self.manifest_queue.request_shutdown()

    async def run(self):
        monitor = asyncio.create_task(
            monitor_queues_periodically(self.repo_queue.db, self.settings.QUEUE_MONITOR_INTERVAL)
        )
        tasks = [
            asyncio.create_task(self.repo_queue.run(self.crawler.handle_search)),
            asyncio.create_task(self.manifest_queue.run(self.manifest_worker.handle_manifest)),
        ]
        tasks += [
            asyncio.create_task(self.run_periodically(name, interval, sweep))
            for name, interval, sweep in self.sweeps()
        ]

        try:
            await asyncio.gather(*tasks)
        finally:
            monitor.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(monitor, *tasks, return_exceptions=True)
