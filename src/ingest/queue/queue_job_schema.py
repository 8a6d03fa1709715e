import json
from datetime import datetime, timezone
from typing import Literal

QueueJobStatus = Literal["pending", "running", "failed"]

QUEUE_JOBS_COLLECTION = "queue_jobs"


def dedupe_key(item: dict) -> str:
    """
    Identity used to coalesce duplicate pending enqueues.

    Work items carry their target URL; anything else falls back to the
    canonical JSON of the payload. The retry counter is not part of identity.
    """
    if isinstance(item.get("url"), str):
        return item["url"]
    identity = {k: v for k, v in item.items() if k != "attempt"}
    return json.dumps(identity, sort_keys=True)


def create_queue_job(queue: str, item: dict, run_at: float) -> dict:
    """
    queue_jobs document

    Args:
        queue: logical queue name ("repos", "manifests")
        item: JSON-serializable work item handed to the consumer
        run_at: unix seconds, earliest time the job may be claimed
    """
    now = datetime.now(timezone.utc)

    return {
        "queue": queue,
        "key": dedupe_key(item),
        "item": item,
        "run_at": run_at,
        "status": "pending",
        "attempts": 0,
        "created_at": now,
        "updated_at": now,
        "started_at": None,
        "completed_at": None,
        "error_message": None,
    }
