import asyncio
from typing import Dict

from motor.motor_asyncio import AsyncIOMotorDatabase

from core.logging.logger import get_logger
from ingest.queue.queue_job_schema import QUEUE_JOBS_COLLECTION


async def queue_status_counts(db: AsyncIOMotorDatabase) -> Dict[str, Dict[str, int]]:
    """
    {queue: {status: count}}
    """
    jobs_col = db[QUEUE_JOBS_COLLECTION]
    pipeline = [
        {"$group": {"_id": {"queue": "$queue", "status": "$status"}, "count": {"$sum": 1}}},
        {"$sort": {"_id.queue": 1, "_id.status": 1}},
    ]

    counts: Dict[str, Dict[str, int]] = {}
    async for doc in jobs_col.aggregate(pipeline):
        counts.setdefault(doc["_id"]["queue"], {})[doc["_id"]["status"]] = doc["count"]
    return counts


async def print_queue_status(db: AsyncIOMotorDatabase):
    """
    Queue status summary
    """
    logger = get_logger(__name__)
    counts = await queue_status_counts(db)

    logger.info("=" * 60)
    logger.info("📊 Queue Status Summary")
    logger.info("=" * 60)
    if not counts:
        logger.info("No queued jobs")
    for queue, statuses in counts.items():
        logger.info(
            f"{queue:10s} pending: {statuses.get('pending', 0):5d}  "
            f"running: {statuses.get('running', 0):3d}  "
            f"failed: {statuses.get('failed', 0):5d}"
        )
    logger.info("=" * 60)

    failed = sum(statuses.get("failed", 0) for statuses in counts.values())
    if failed > 0:
        logger.info("Recent Failed Jobs:")
        failed_jobs = (
            db[QUEUE_JOBS_COLLECTION]
            .find({"status": "failed"})
            .sort("updated_at", -1)
            .limit(5)
        )
        async for job in failed_jobs:
            logger.error(
                f"  - {job['queue']} | {job['key']} | "
                f"Error: {job.get('error_message', 'Unknown')}"
            )
        logger.info("=" * 60)


async def monitor_queues_periodically(db: AsyncIOMotorDatabase, interval: int = 600):
    """
    Periodically log queue status.

    Args:
        interval: seconds between summaries (default 10 minutes)
    """
    logger = get_logger(__name__)
    logger.info(f"Queue monitor started (interval: {interval}s)")

    while True:
        try:
            await asyncio.sleep(interval)
            await print_queue_status(db)
        except asyncio.CancelledError:
            logger.info("Queue monitor stopped")
            break
        except Exception as e:
            logger.error(f"Monitor error: {e}", exc_info=True)
