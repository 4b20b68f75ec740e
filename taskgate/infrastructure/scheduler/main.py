"""
Scheduler for TaskGate.

Standalone Usage:
    python -m taskgate.infrastructure.scheduler.main

The API process starts the same scheduler when ``ENABLE_SCHEDULER`` is set.
"""

import asyncio
import signal
from datetime import timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from taskgate.core.config import Settings, scheduler_logger, settings
from taskgate.core.db import Database
from taskgate.infrastructure.scheduler.jobs import cleanup_otp_challenges


def create_scheduler() -> AsyncIOScheduler:
    # In-memory job store: every job is re-added on start with replace_existing
    return AsyncIOScheduler(timezone=timezone.utc)


def schedule_otp_cleanup_job(
    scheduler: AsyncIOScheduler,
    database: Database,
    interval_minutes: int = 15,
    retention_seconds: int = 3600,
) -> None:
    """
    Schedule the cleanup_otp_challenges job to run at specified intervals.
    """
    scheduler_logger.info(
        f"Scheduling 'cleanup_otp_challenges' job to run every {interval_minutes} minutes"
    )
    scheduler.add_job(
        cleanup_otp_challenges,
        trigger=IntervalTrigger(minutes=interval_minutes, timezone=timezone.utc),
        replace_existing=True,
        id="cleanup_otp_challenges_job",
        misfire_grace_time=60 * 5,  # 5 minutes grace time
        kwargs={"database": database, "retention_seconds": retention_seconds},
    )
    scheduler_logger.info("'cleanup_otp_challenges' job scheduled successfully.")


def initialize_scheduler(database: Database, settings: Settings) -> AsyncIOScheduler:
    scheduler = create_scheduler()
    schedule_otp_cleanup_job(
        scheduler,
        database,
        interval_minutes=settings.OTP_CLEANUP_INTERVAL_MINUTES,
        retention_seconds=settings.OTP_RATE_LIMIT_WINDOW_SECONDS,
    )
    return scheduler


async def main() -> None:
    """
    Main entry point for standalone scheduler execution.
    """
    shutdown_event = asyncio.Event()

    def handle_shutdown(signum, frame):
        scheduler_logger.info(f"Received signal {signum}, initiating shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    scheduler_logger.info("Starting standalone scheduler...")
    database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
    scheduler: AsyncIOScheduler | None = None

    try:
        await database.init()
        scheduler = initialize_scheduler(database, settings)
        scheduler.start()
        scheduler_logger.info("Scheduler started. Waiting for jobs...")

        await shutdown_event.wait()

    except Exception as e:
        scheduler_logger.exception(f"Scheduler error: {e}")
        raise

    finally:
        scheduler_logger.info("Shutting down scheduler...")
        if scheduler is not None and scheduler.running:
            scheduler.shutdown(wait=False)
        await database.dispose()
        scheduler_logger.info("Scheduler shutdown complete.")


if __name__ == "__main__":
    asyncio.run(main())
