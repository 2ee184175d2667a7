"""In-process batch jobs, each on its own fixed interval.

Every loop opens a fresh session per cycle, logs and swallows cycle errors,
and keeps going. Loops are started and cancelled by the app lifespan.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from pulse.config import settings
from pulse.correlation.service import materialize_correlations
from pulse.forecast.service import materialize_forecasts
from pulse.integrations.gap_detection import run_gap_detection
from pulse.integrations.github_client import GitHubClient
from pulse.integrations.rate_limit import RateLimitCooldown
from pulse.metrics.enrichment import enrich_pr_delivery_streams
from pulse.queue.service import process_pending
from pulse.retention.service import run_retention_sweep

logger = structlog.get_logger()


async def run_queue_drain_cycle() -> None:
    from pulse.database import async_session_factory

    async with async_session_factory() as db:
        await process_pending(db, limit=settings.QUEUE_BATCH_LIMIT)


async def run_correlation_cycle() -> None:
    from pulse.database import async_session_factory

    async with async_session_factory() as db:
        await materialize_correlations(db)


async def run_forecast_cycle() -> None:
    from pulse.database import async_session_factory

    async with async_session_factory() as db:
        await materialize_forecasts(db)


async def run_enrichment_cycle() -> None:
    from pulse.database import async_session_factory

    async with async_session_factory() as db:
        await enrich_pr_delivery_streams(db)


async def run_retention_cycle() -> None:
    from pulse.database import async_session_factory

    async with async_session_factory() as db:
        await run_retention_sweep(db)


async def run_gap_detection_cycle(cooldown: RateLimitCooldown) -> None:
    from pulse.database import async_session_factory

    if not settings.GITHUB_TOKEN:
        logger.warning("github_gap_detection_skipped", reason="GITHUB_TOKEN not set")
        return

    client = GitHubClient(settings.GITHUB_TOKEN, cooldown, base_url=settings.GITHUB_API_URL)
    async with async_session_factory() as db:
        await run_gap_detection(db, client, lookback_days=settings.GAP_DETECTION_LOOKBACK_DAYS)


async def _run_forever(name: str, cycle: Callable[[], Awaitable[None]], interval: int) -> None:
    logger.info("scheduler_loop_started", job=name, interval=interval)
    while True:
        try:
            await cycle()
        except Exception:
            logger.exception("scheduler_loop_error", job=name)
        await asyncio.sleep(interval)


def start_scheduler() -> list[asyncio.Task]:
    """Create one task per job. The caller cancels them on shutdown."""
    cooldown = RateLimitCooldown(
        floor=settings.GITHUB_RATE_LIMIT_FLOOR,
        cooldown_seconds=settings.GITHUB_RATE_LIMIT_COOLDOWN_SECONDS,
    )
    jobs: list[tuple[str, Callable[[], Awaitable[None]], int]] = [
        ("queue_drain", run_queue_drain_cycle, settings.QUEUE_DRAIN_INTERVAL_SECONDS),
        ("cross_stream_correlation", run_correlation_cycle, settings.CORRELATION_INTERVAL_SECONDS),
        ("forecast", run_forecast_cycle, settings.FORECAST_INTERVAL_SECONDS),
        ("pr_delivery_stream_enrichment", run_enrichment_cycle, settings.ENRICHMENT_INTERVAL_SECONDS),
        ("retention", run_retention_cycle, settings.RETENTION_INTERVAL_SECONDS),
        (
            "github_gap_detection",
            lambda: run_gap_detection_cycle(cooldown),
            settings.GAP_DETECTION_INTERVAL_SECONDS,
        ),
    ]
    return [asyncio.create_task(_run_forever(name, cycle, interval)) for name, cycle, interval in jobs]
