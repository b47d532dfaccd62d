"""
Job Scheduler Module.

Runs the scraping pipeline on a fixed interval.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from config.settings import get_settings
from src.jobs.pipeline import Pipeline, configured_credentials

scheduler_log = logger.bind(module="Scheduler")

# Scheduler instance
_scheduler = AsyncIOScheduler(timezone="UTC")

# Pipeline instance (lazy initialized)
_pipeline: Pipeline | None = None


def get_pipeline() -> Pipeline:
    """Get or create pipeline instance."""
    global _pipeline
    if _pipeline is None:
        _pipeline = Pipeline()
    return _pipeline


async def close_pipeline() -> None:
    """Close pipeline resources."""
    global _pipeline
    if _pipeline is not None:
        await _pipeline.close()
        _pipeline = None


async def run_pipeline_job() -> None:
    """Scheduled job: one pipeline run with the configured credentials."""
    scheduler_log.info("Running scheduled scraping job...")
    result = await get_pipeline().run(configured_credentials())
    if result.success:
        scheduler_log.info(
            f"Scheduled run: {result.listings_extracted} extracted, "
            f"{result.listings_saved} saved ({result.duration_ms}ms)"
        )
    else:
        scheduler_log.warning(f"Scheduled run failed: {result.error} ({result.message})")


def setup_jobs() -> None:
    """Register the interval job."""
    pipeline = get_settings().pipeline

    _scheduler.add_job(
        run_pipeline_job,
        IntervalTrigger(minutes=pipeline.interval_minutes, timezone="UTC"),
        id="dwv_scraper_job",
        name=f"DWV scraper (every {pipeline.interval_minutes} min)",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler_log.info(f"Scraper scheduled every {pipeline.interval_minutes} min")


def start() -> None:
    """Start the scheduler."""
    setup_jobs()
    _scheduler.start()
    scheduler_log.info("Scheduler started")


def shutdown() -> None:
    """Shutdown the scheduler."""
    if _scheduler.running:
        _scheduler.shutdown(wait=False)
        scheduler_log.info("Scheduler stopped")
