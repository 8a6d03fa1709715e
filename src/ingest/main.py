import asyncio
import signal

from core.config.settings import settings
from core.containers.app_containers import AppContainer
from core.logging.logger import configure_logging, get_logger
from ingest.queue.queue_indexes import ensure_queue_indexes
from ingest.queue.queue_monitor import print_queue_status
from ingest.sources.base import CredentialsError

logger = get_logger(__name__)


async def main():
    configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    container = AppContainer()
    mongo = container.mongo_client()
    http = container.http_client()
    store = container.store()

    logger.info("=" * 60)
    logger.info(f"{settings.APP_NAME} Ingest Starting")
    logger.info("=" * 60)

    try:
        logger.info("🔧 Ensuring indexes...")
        await store.ensure_indexes()
        await ensure_queue_indexes(store.db, settings.FAILED_JOB_TTL_SECONDS)
        logger.info("Indexes ready")

        await store.ping()
        logger.info("MongoDB connected")

        service = container.ingest_service()
        try:
            await service.verify_credentials()
        except CredentialsError as e:
            logger.critical(f"Credential check failed: {e}")
            raise SystemExit(1)

        await service.restore_stale_jobs()
        await print_queue_status(store.db)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, service.request_shutdown)

        logger.info("=" * 60)
        await service.run()
    finally:
        await http.aclose()
        mongo.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    logger.info("Shutdown complete")
