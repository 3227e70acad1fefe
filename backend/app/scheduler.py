"""
APScheduler background jobs.

- daily_report_generation: snapshots of the previous day for every active user,
  plus the organisation CSV uploaded to object storage.
- expired_token_cleanup: purges refresh tokens past their expiry.
"""

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import settings
from app.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(timezone="UTC")


def _generate_daily_reports_scheduled() -> None:
    """Generates the reports for yesterday. Local import to avoid circular imports."""
    from app.services.report_service import generate_daily_reports

    target_date = datetime.now(timezone.utc).date() - timedelta(days=1)
    db = SessionLocal()
    try:
        snapshots = generate_daily_reports(db, target_date)
        logger.info("Daily reports for %s: %d users", target_date, len(snapshots))
    except Exception as exc:
        logger.error("Daily report generation failed for %s: %s", target_date, exc)
    finally:
        db.close()


def _cleanup_expired_tokens_scheduled() -> None:
    from app.services.auth_service import cleanup_expired_tokens

    db = SessionLocal()
    try:
        removed = cleanup_expired_tokens(db)
        logger.info("Expired refresh tokens removed: %d", removed)
    except Exception as exc:
        logger.error("Expired token cleanup failed: %s", exc)
    finally:
        db.close()


def start_scheduler() -> None:
    """Registers the jobs and starts the scheduler (called at API startup)."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled by configuration")
        return

    scheduler.add_job(
        _generate_daily_reports_scheduled,
        trigger="cron",
        hour=settings.REPORT_JOB_HOUR,
        minute=0,
        id="daily_report_generation",
        replace_existing=True,
    )
    scheduler.add_job(
        _cleanup_expired_tokens_scheduled,
        trigger="cron",
        hour=settings.CLEANUP_JOB_HOUR,
        minute=0,
        id="expired_token_cleanup",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler started: reports at %02d:00 UTC, token cleanup at %02d:00 UTC",
        settings.REPORT_JOB_HOUR, settings.CLEANUP_JOB_HOUR,
    )


def stop_scheduler() -> None:
    """Stops the scheduler (called at API shutdown)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
