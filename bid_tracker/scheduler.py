"""
Scheduler module for Bid Tracker.

Uses APScheduler to run syncs on a schedule:
- Every SYNC_INTERVAL_MINUTES: Sync bids for all active auctions
- Daily: Close auctions whose end time has passed

Can also be run manually via command line.
"""

import logging
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .config import get_app_config
from .pipeline import sync_active_auctions, close_ended_auctions

logger = logging.getLogger(__name__)


def create_scheduler() -> BlockingScheduler:
    """
    Create and configure the APScheduler.

    Jobs:
    1. auto_sync: Every N minutes - sync bids from Facebook posts
    2. close_ended: Daily at 00:05 - mark finished auctions as ended

    auto_sync runs with max_instances=1, so two sync passes never
    overlap on the same auction from this process.

    Returns:
        Configured BlockingScheduler
    """
    config = get_app_config()
    scheduler = BlockingScheduler()

    # Job 1: Sync bids on an interval
    scheduler.add_job(
        sync_active_auctions,
        trigger=IntervalTrigger(minutes=config.sync_interval_minutes),
        id="auto_sync",
        name="Sync bids from Facebook comments",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    # Job 2: Close ended auctions daily
    scheduler.add_job(
        close_ended_auctions_job,
        trigger=CronTrigger(hour=0, minute=5),
        id="close_ended",
        name="Close ended auctions",
        replace_existing=True,
        max_instances=1,
    )

    logger.info(f"Scheduler configured with 2 jobs (sync every {config.sync_interval_minutes} min)")
    return scheduler


def close_ended_auctions_job() -> None:
    """Wrapper for closing auctions to handle logging."""
    logger.info("Closing ended auctions...")
    try:
        closed = close_ended_auctions()
        logger.info(f"Closed {closed} auctions")
    except Exception as e:
        logger.error(f"Closing ended auctions failed: {e}")


def start_scheduler() -> None:
    """Start the scheduler (blocking)."""
    scheduler = create_scheduler()

    logger.info("Starting Bid Tracker scheduler...")
    logger.info("Press Ctrl+C to stop")

    # Run initial sync immediately
    logger.info("Running initial sync...")
    try:
        sync_active_auctions()
    except Exception as e:
        logger.error(f"Initial sync failed: {e}")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")


# =============================================================================
# CLI ENTRY POINT
# =============================================================================

def main():
    """CLI entry point for the scheduler."""
    import argparse

    parser = argparse.ArgumentParser(description="Bid Tracker Scheduler")
    parser.add_argument(
        "--mode",
        choices=["schedule", "once", "close"],
        default="schedule",
        help="Mode to run: schedule (continuous), once (single sync run), close (close ended auctions)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level"
    )

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    if args.mode == "schedule":
        start_scheduler()
    elif args.mode == "once":
        logger.info("Running single sync...")
        sync_active_auctions()
    elif args.mode == "close":
        close_ended_auctions_job()


if __name__ == "__main__":
    main()
