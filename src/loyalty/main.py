"""FastAPI application entrypoint for the loyalty service."""

import logging

from fastapi import FastAPI

from .api.v1.router import api_router
from .core.config import get_settings
from .core.database import Base, engine
from .jobs import register_scheduler

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Loyalty Rewards API", version="0.1.0")
    app.include_router(api_router, prefix="/api/v1")
    register_scheduler(app)

    if settings.auto_create_tables:

        @app.on_event("startup")
        def create_tables() -> None:
            Base.metadata.create_all(bind=engine)
            logger.info("database tables ensured")

    return app


app = create_app()
