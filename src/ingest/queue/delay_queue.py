import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from core.clock import SystemClock
from core.logging.logger import get_logger
from ingest.queue.queue_job_schema import QUEUE_JOBS_COLLECTION, create_queue_job

Handler = Callable[[dict], Awaitable[None]]


class DelayQueue:
    """
    Durable delay queue backed by the queue_jobs collection.

    - enqueue(item, delay): the item becomes claimable at now + delay
    - run(handler): single consumer, claims due jobs in run_at order
    - a job is deleted once its handler returns; if the handler raises the
      job is kept as "failed" and not retried

    Pending jobs survive restarts. Jobs left "running" by a crash are put
    back to pending by restore_stale_jobs() at startup.
    """

    def __init__(self, mongo, db_name: str, name: str, clock=None, poll_interval: float = 10):
        self.db = mongo[db_name]
        self.jobs_col = self.db[QUEUE_JOBS_COLLECTION]
        self.name = name
        self.clock = clock or SystemClock()
        self.poll_interval = poll_interval
        self.logger = get_logger(__name__)
        self.current_job_id = None
        self.shutdown_requested = False

    async def enqueue(self, item: dict, delay: float = 0) -> bool:
        """
        Returns False when an identical pending job already exists.
        """
        run_at = self.clock.now() + max(0.0, delay)
        document = create_queue_job(self.name, item, run_at)
        try:
            await self.jobs_col.insert_one(document)
        except DuplicateKeyError:
            self.logger.debug(f"[{self.name}] Already pending: {document['key']}")
            return False
        return True

    async def acquire_job(self) -> Optional[dict]:
        """
        Atomically claim the earliest due pending job.
        """
        now = datetime.now(timezone.utc)
        return await self.jobs_col.find_one_and_update(
            {
                "queue": self.name,
                "status": "pending",
                "run_at": {"$lte": self.clock.now()},
            },
            {
                "$set": {
                    "status": "running",
                    "started_at": now,
                    "updated_at": now,
                },
                "$inc": {"attempts": 1},
            },
            sort=[("run_at", 1), ("_id", 1)],
            return_document=ReturnDocument.AFTER,
        )

    async def process_job(self, job: dict, handler: Handler):
        self.current_job_id = job["_id"]
        try:
            await handler(job["item"])
        except Exception as e:
            self.logger.error(
                f"[{self.name}] [Job {self.current_job_id}] Handler failed: {e}",
                exc_info=True,
            )
            await self._mark_job_failed(job, f"Unexpected error: {e}")
        else:
            await self.jobs_col.delete_one({"_id": job["_id"]})
        finally:
            self.current_job_id = None

    async def _mark_job_failed(self, job: dict, error_message: str):
        now = datetime.now(timezone.utc)
        await self.jobs_col.update_one(
            {"_id": job["_id"]},
            {
                "$set": {
                    "status": "failed",
                    "completed_at": now,
                    "updated_at": now,
                    "error_message": error_message,
                }
            },
        )

    async def idle_seconds(self) -> float:
        """
        How long to wait before the next claim attempt: until the earliest
        pending run_at, capped at poll_interval.
        """
        upcoming = await self.jobs_col.find_one(
            {"queue": self.name, "status": "pending"},
            {"run_at": 1},
            sort=[("run_at", 1)],
        )
        if upcoming is None:
            return self.poll_interval
        wait = upcoming["run_at"] - self.clock.now()
        return min(self.poll_interval, max(0.0, wait))

    async def _restore_job(self, job_id) -> bool:
        """
        Return a running job to pending. When an identical job was enqueued
        meanwhile, the pending one wins and this one is dropped.
        """
        try:
            result = await self.jobs_col.update_one(
                {"_id": job_id, "status": "running"},
                {
                    "$set": {
                        "status": "pending",
                        "updated_at": datetime.now(timezone.utc),
                    }
                },
            )
        except DuplicateKeyError:
            await self.jobs_col.delete_one({"_id": job_id, "status": "running"})
            self.logger.info(f"[{self.name}] Dropped job {job_id}: an identical job is already pending")
            return False
        return result.modified_count > 0

    async def restore_stale_jobs(self) -> int:
        """
        Put jobs stranded in "running" (previous process crashed) back to pending.
        """
        stale = self.jobs_col.find({"queue": self.name, "status": "running"}, {"_id": 1})
        restored = 0
        async for job in stale:
            if await self._restore_job(job["_id"]):
                restored += 1

        if restored > 0:
            self.logger.warning(f"[{self.name}] Restored {restored} stale running jobs to pending")
        return restored

    async def cleanup(self):
        """
        On shutdown, return the in-flight job to pending.
        """
        if self.current_job_id:
            if await self._restore_job(self.current_job_id):
                self.logger.info(f"[{self.name}] Restored job {self.current_job_id} to pending on shutdown")
            self.current_job_id = None

    def request_shutdown(self):
        self.shutdown_requested = True

    async def _sleep(self, seconds: float):
        # sliced so shutdown is noticed within a second
        remaining = seconds
        while remaining > 0 and not self.shutdown_requested:
            step = min(1.0, remaining)
            await asyncio.sleep(step)
            remaining -= step

    async def run(self, handler: Handler):
        self.logger.info(f"[{self.name}] Consumer started")

        try:
            while not self.shutdown_requested:
                job = await self.acquire_job()

                if job:
                    await self.process_job(job, handler)
                else:
                    await self._sleep(await self.idle_seconds())

        except asyncio.CancelledError:
            self.logger.info(f"[{self.name}] Consumer cancelled")
            raise
        finally:
            await self.cleanup()
            self.logger.info(f"[{self.name}] Consumer stopped")
