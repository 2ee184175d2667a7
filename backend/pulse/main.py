import asyncio
import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from pulse.config import settings
from pulse.metrics.router import router as metrics_router
from pulse.middleware.error_handler import ErrorHandlerMiddleware
from pulse.middleware.logging import RequestLoggingMiddleware
from pulse.platform_settings.router import router as settings_router
from pulse.webhooks.router import router as webhooks_router

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelNamesMapping().get(settings.LOG_LEVEL.upper(), logging.INFO)
    ),
    logger_factory=structlog.PrintLoggerFactory(),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from pulse.scheduler import start_scheduler

    tasks = start_scheduler() if settings.SCHEDULER_ENABLED else []
    yield
    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass


def create_app() -> FastAPI:
    app = FastAPI(
        title="Delivery Pulse",
        version="0.1.0",
        docs_url="/docs",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)

    app.include_router(webhooks_router, prefix="/api/v1")
    app.include_router(settings_router, prefix="/api/v1")
    app.include_router(metrics_router, prefix="/api/v1")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
