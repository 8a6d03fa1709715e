# src/api/main.py

from fastapi import FastAPI
from contextlib import asynccontextmanager

from core.config.settings import settings
from core.containers.app_containers import AppContainer
from core.logging.logger import configure_logging, get_logger
from api.routes.health_router import router as health_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    container: AppContainer = app.container

    mongo_client = container.mongo_client()
    logger.info("Mongo Connected")

    yield

    mongo_client.close()
    logger.info("Mongo Disconnected")


def create_app(container: AppContainer = None) -> FastAPI:
    configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    container = container or AppContainer()
    container.wire(modules=["api.routes.health_router"])
    app = FastAPI(
        title=settings.APP_NAME,
        lifespan=lifespan
    )

    app.container = container

    app.include_router(health_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=settings.HOST, port=settings.PORT)
