import httpx
from dependency_injector import containers, providers
from motor.motor_asyncio import AsyncIOMotorClient

from core.clock import SystemClock
from core.config.settings import settings
from ingest.crawler.backoff import BackoffPolicy
from ingest.crawler.date_windows import DateWindowCursor
from ingest.crawler.fetcher import HttpFetcher
from ingest.crawler.manifest_worker import ManifestWorker
from ingest.crawler.repo_crawler import RepoCrawler
from ingest.queue.delay_queue import DelayQueue
from ingest.service import IngestService
from ingest.sources.platforms import build_platforms
from ingest.storage.mongo_store import MongoStore


class AppContainer(containers.DeclarativeContainer):

    config = providers.Object(settings)

    mongo_client = providers.Singleton(
        AsyncIOMotorClient,
        settings.MONGO_URL
    )

    http_client = providers.Singleton(
        httpx.AsyncClient,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        follow_redirects=True,
    )

    clock = providers.Singleton(SystemClock)

    store = providers.Singleton(
        MongoStore,
        mongo=mongo_client,
        db_name=settings.MONGO_DB_NAME,
        use_transactions=settings.MONGO_USE_TRANSACTIONS,
    )

    platforms = providers.Singleton(
        build_platforms,
        github_token=settings.GITHUB_TOKEN,
        codeberg_token=settings.CODEBERG_TOKEN,
    )

    fetcher = providers.Singleton(HttpFetcher, client=http_client)

    backoff = providers.Singleton(
        BackoffPolicy,
        page_delay=settings.PAGE_DELAY_SECONDS,
        rate_limit_fallback=settings.RATE_LIMIT_FALLBACK_SECONDS,
        retry_base_delay=settings.RETRY_BASE_DELAY_SECONDS,
        retry_max_attempts=settings.RETRY_MAX_ATTEMPTS,
    )

    repo_queue = providers.Singleton(
        DelayQueue,
        mongo=mongo_client,
        db_name=settings.MONGO_DB_NAME,
        name="repos",
        clock=clock,
        poll_interval=settings.QUEUE_POLL_INTERVAL,
    )

    manifest_queue = providers.Singleton(
        DelayQueue,
        mongo=mongo_client,
        db_name=settings.MONGO_DB_NAME,
        name="manifests",
        clock=clock,
        poll_interval=settings.QUEUE_POLL_INTERVAL,
    )

    crawler = providers.Singleton(
        RepoCrawler,
        platforms=platforms,
        fetcher=fetcher,
        queue=repo_queue,
        manifest_queue=manifest_queue,
        store=store,
        clock=clock,
        policy=backoff,
        windows=providers.Factory(DateWindowCursor, clock=clock),
        excluded_keywords=settings.EXCLUDED_KEYWORDS,
        manifest_max_age=settings.MANIFEST_MAX_AGE_SECONDS,
    )

    manifest_worker = providers.Singleton(
        ManifestWorker,
        platforms=platforms,
        fetcher=fetcher,
        queue=manifest_queue,
        store=store,
        clock=clock,
        policy=backoff,
        excluded_keywords=settings.EXCLUDED_KEYWORDS,
        max_age=settings.MANIFEST_MAX_AGE_SECONDS,
        batch_size=settings.MANIFEST_SWEEP_BATCH,
    )

    ingest_service = providers.Singleton(
        IngestService,
        platforms=platforms,
        http=http_client,
        repo_queue=repo_queue,
        manifest_queue=manifest_queue,
        crawler=crawler,
        manifest_worker=manifest_worker,
        settings=config,
    )
