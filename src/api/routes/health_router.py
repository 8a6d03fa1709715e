# src/api/routes/health_router.py
from fastapi import APIRouter
from dependency_injector.wiring import Provide, inject

from core.containers.app_containers import AppContainer
from core.logging.logger import get_logger
from ingest.queue.queue_monitor import queue_status_counts

router = APIRouter(prefix="/health", tags=["Health"])
logger = get_logger(__name__)


@router.get("/")
@inject
async def health_check(store=Provide[AppContainer.store]):
    try:
        await store.ping()
    except Exception as e:
        logger.warning(f"Mongo ping failed: {e}")
        return {"status": "degraded", "mongo": "disconnected"}

    return {
        "status": "ok",
        "mongo": "connected",
        "counts": await store.collection_counts(),
        "queues": await queue_status_counts(store.db),
    }
