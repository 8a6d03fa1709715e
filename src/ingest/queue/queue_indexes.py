from motor.motor_asyncio import AsyncIOMotorDatabase

from ingest.queue.queue_job_schema import QUEUE_JOBS_COLLECTION

FAILED_JOB_TTL_SECONDS = 7 * 24 * 60 * 60


async def ensure_queue_indexes(db: AsyncIOMotorDatabase, failed_job_ttl: int = FAILED_JOB_TTL_SECONDS):
    """queue_jobs collection indexes"""
    col = db[QUEUE_JOBS_COLLECTION]

    # queue + status + run_at: claim the earliest due job
    await col.create_index(
        [("queue", 1), ("status", 1), ("run_at", 1)],
        name="queue_status_run_at",
    )

    # at most one pending job per target
    await col.create_index(
        [("queue", 1), ("key", 1)],
        unique=True,
        partialFilterExpression={"status": "pending"},
        name="queue_key_pending_unique",
    )

    # failed jobs are kept for inspection, then expire
    await col.create_index(
        [("completed_at", 1)],
        expireAfterSeconds=failed_job_ttl,
        partialFilterExpression={"status": "failed"},
        name="failed_completed_at_ttl",
    )

    # monitoring
    await col.create_index(
        [("updated_at", -1)],
        name="updated_at_desc",
    )
