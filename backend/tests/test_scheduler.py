"""
Unit tests for the background jobs.
"""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from app import scheduler
from app.config import settings


def test_start_scheduler_disabled_registers_nothing():
    with patch.object(scheduler, "scheduler") as sched:
        scheduler.start_scheduler()
    sched.add_job.assert_not_called()
    sched.start.assert_not_called()


def test_start_scheduler_registers_jobs(monkeypatch):
    monkeypatch.setattr(settings, "SCHEDULER_ENABLED", True)
    with patch.object(scheduler, "scheduler") as sched:
        scheduler.start_scheduler()

    ids = [c.kwargs["id"] for c in sched.add_job.call_args_list]
    assert ids == ["daily_report_generation", "expired_token_cleanup"]
    assert sched.add_job.call_args_list[0].kwargs["hour"] == settings.REPORT_JOB_HOUR
    sched.start.assert_called_once()


def test_daily_report_job_targets_yesterday():
    session = MagicMock()
    with patch.object(scheduler, "SessionLocal", return_value=session), \
         patch("app.services.report_service.generate_daily_reports", return_value=[]) as generate:
        scheduler._generate_daily_reports_scheduled()

    generate.assert_called_once_with(session, datetime.now(timezone.utc).date() - timedelta(days=1))
    session.close.assert_called_once()


def test_daily_report_job_uses_utc_date():
    session = MagicMock()
    clock = MagicMock()
    clock.now.return_value = datetime(2026, 3, 10, 1, 0, tzinfo=timezone.utc)
    with patch.object(scheduler, "SessionLocal", return_value=session), \
         patch.object(scheduler, "datetime", clock), \
         patch("app.services.report_service.generate_daily_reports", return_value=[]) as generate:
        scheduler._generate_daily_reports_scheduled()

    clock.now.assert_called_once_with(timezone.utc)
    generate.assert_called_once_with(session, date(2026, 3, 9))


def test_daily_report_job_failure_is_logged():
    session = MagicMock()
    with patch.object(scheduler, "SessionLocal", return_value=session), \
         patch("app.services.report_service.generate_daily_reports", side_effect=RuntimeError("db down")):
        scheduler._generate_daily_reports_scheduled()

    session.close.assert_called_once()


def test_token_cleanup_job():
    session = MagicMock()
    with patch.object(scheduler, "SessionLocal", return_value=session), \
         patch("app.services.auth_service.cleanup_expired_tokens", return_value=3) as cleanup:
        scheduler._cleanup_expired_tokens_scheduled()

    cleanup.assert_called_once_with(session)
    session.close.assert_called_once()


def test_stop_scheduler_when_not_running():
    with patch.object(scheduler, "scheduler") as sched:
        sched.running = False
        scheduler.stop_scheduler()
    sched.shutdown.assert_not_called()
