# scheduler/scheduler.py
import asyncio
import logging
import os
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from scheduler.exporter import export_static_data
from scheduler.reporter import generate_export_report
from storefront.service import get_data_service


logger = logging.getLogger("scheduler")
logger.setLevel(logging.INFO)
handler = logging.StreamHandler()
handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
logger.addHandler(handler)

EXPORT_HOUR = int(os.getenv("EXPORT_HOUR", "3"))


async def scheduled_export():
    """
    Regenerate the static storefront snapshot and report what changed.

    Logs:
        - Info message when the export starts
        - Info message with the change count when it completes
    """
    logger.info("Starting scheduled static export")
    service = get_data_service()
    changes = await export_static_data(service.store, service.static_dir)
    logger.info(f"Scheduled export finished, {len(changes)} changes detected")
    generate_export_report(changes, stats=service.get_governor_stats())


async def async_main():
    """
    Run the export job once a day at EXPORT_HOUR (UTC) until terminated.
    """
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        scheduled_export,
        "cron",
        hour=EXPORT_HOUR,
        id="static_export",
    )

    scheduler.start()
    logger.info(f"Scheduler started (daily at {EXPORT_HOUR:02d}:00 UTC)")
    # Keep program running forever
    await asyncio.Event().wait()


if __name__ == "__main__":
    asyncio.run(async_main())
