import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from fleet_alerts.config import settings
from fleet_alerts.core.exceptions import install_exception_handlers
from fleet_alerts.core.middleware import setup_middleware
from fleet_alerts.services.events import AlertEventPublisher, LoggingEventPublisher

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )


async def ensure_tables() -> None:
    """Create DB tables if they do not exist yet."""
    from fleet_alerts.db.base import Base
    from fleet_alerts.db.engine import engine
    import fleet_alerts.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await ensure_tables()

    yield

    from fleet_alerts.db.engine import engine
    await engine.dispose()
    logger.info("Database engine disposed")


def create_app(event_publisher: AlertEventPublisher | None = None) -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="Fleet Alerts API",
        version="0.1.0",
        description="Alert lifecycle and authorization for the IoT fleet dashboard",
        debug=settings.APP_DEBUG,
        lifespan=lifespan,
    )
    # Lifecycle events go to whichever fan-out the process wires in
    app.state.event_publisher = event_publisher or LoggingEventPublisher()

    setup_middleware(app)
    install_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    from fleet_alerts.api.v1 import router as api_v1_router
    app.include_router(api_v1_router, prefix="/api/v1")

    return app


app = create_app()
