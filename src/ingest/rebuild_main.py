import asyncio

from core.config.settings import settings
from core.containers.app_containers import AppContainer
from core.logging.logger import configure_logging, get_logger

logger = get_logger(__name__)


async def main():
    """
    Re-parse every stored build.zig.zon and rewrite snapshots and edges.
    No network access to the platforms.
    """
    configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    container = AppContainer()
    mongo = container.mongo_client()
    http = container.http_client()
    store = container.store()

    try:
        await store.ensure_indexes()
        await store.ping()
        stats = await container.manifest_worker().rebuild()
        logger.info(f"Rebuilt {stats['rebuilt']} manifests ({stats['failed']} unparseable)")
    finally:
        await http.aclose()
        mongo.close()


if __name__ == "__main__":
    asyncio.run(main())
