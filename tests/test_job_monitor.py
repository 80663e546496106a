from datetime import datetime, timedelta

import pytest

from models import JobRun
from services.accrual_engine import run_daily_accrual
from services.job_monitor import (
    finish_job_run, get_job_health, get_last_run, get_recent_runs, is_stale,
    record_job_run, start_job_run
)

JOB = 'daily-investments'
NOW = datetime(2025, 10, 2, 12, 0)


def add_run(started_at, success, processed=0, completed=0, job_name=JOB):
    return record_job_run(
        job_name, started_at, started_at + timedelta(seconds=3), success,
        processed_count=processed, completed_count=completed,
        error_text=None if success else 'query failed'
    )


def test_start_then_finish_finalizes_once(app):
    job_run = start_job_run(JOB, source='manual', as_of_day=datetime(2025, 10, 2))
    assert job_run.id is not None
    assert job_run.success is None
    assert not job_run.is_finished

    finish_job_run(job_run, True, processed_count=4, completed_count=1, total_applied=140)

    stored = JobRun.query.one()
    assert stored.success is True
    assert stored.processed_count == 4
    assert stored.finished_at >= stored.started_at

    with pytest.raises(ValueError):
        finish_job_run(job_run, False)


def test_last_run_is_latest_started(app):
    add_run(NOW - timedelta(hours=30), True)
    latest = add_run(NOW - timedelta(hours=2), False)

    assert get_last_run(JOB).id == latest.id
    assert get_last_run('other-job') is None


def test_recent_runs_newest_first_and_limited(app):
    for hours in (48, 24, 1):
        add_run(NOW - timedelta(hours=hours), True)

    runs = get_recent_runs(JOB, limit=2)

    assert [run.started_at for run in runs] == [NOW - timedelta(hours=1), NOW - timedelta(hours=24)]


def test_never_run_job_is_stale(app):
    assert is_stale(JOB, 26, now=NOW)


def test_recent_success_is_not_stale(app):
    add_run(NOW - timedelta(hours=25), True)
    assert not is_stale(JOB, 26, now=NOW)


def test_only_failures_within_threshold_is_stale(app):
    add_run(NOW - timedelta(hours=30), True)
    add_run(NOW - timedelta(hours=1), False)
    assert is_stale(JOB, 26, now=NOW)


def test_other_job_does_not_count(app):
    add_run(NOW - timedelta(hours=1), True, job_name='weekly-report')
    assert is_stale(JOB, 26, now=NOW)


def test_health_payload(app):
    add_run(NOW - timedelta(hours=26, minutes=30), True, processed=10, completed=2)
    add_run(NOW - timedelta(hours=2), False, processed=0)

    health = get_job_health(JOB, 26, now=NOW)

    assert health['stale'] is True
    assert health['stale_threshold_hours'] == 26
    assert health['now'] == '2025-10-02T12:00:00Z'
    assert health['hours_since_last_success'] == 26.5
    assert health['last_run']['success'] is False
    assert health['last_successful_run']['processed_count'] == 10
    assert health['recent_count'] == 2
    assert health['stats'] == {
        'successes': 1,
        'failures': 1,
        'success_rate': 0.5,
        'avg_processed': 5,
        'avg_completed': 1,
    }


def test_health_payload_without_runs(app):
    health = get_job_health(JOB, 26, now=NOW)

    assert health['stale'] is True
    assert health['last_run'] is None
    assert health['hours_since_last_success'] is None
    assert health['stats']['success_rate'] == 0


def test_dry_run_does_not_clear_stale_flag(db):
    job_run = start_job_run(JOB, source='manual', as_of_day=datetime(2025, 10, 2), dry_run=True)
    finish_job_run(job_run, True, processed_count=5)
    job_run.started_at = NOW - timedelta(hours=1)
    db.session.commit()

    health = get_job_health(JOB, 26, now=NOW)

    assert is_stale(JOB, 26, now=NOW)
    assert health['stale'] is True
    assert health['last_successful_run'] is None
    assert health['last_run']['dry_run'] is True
    assert health['recent_count'] == 1
    assert health['dry_run_count'] == 1
    assert health['stats']['successes'] == 0
    assert health['stats']['avg_processed'] == 0


def test_engine_dry_run_leaves_job_stale(make_investment):
    make_investment()
    assert is_stale(JOB, 26)

    job_run = run_daily_accrual(dry_run=True, source='manual')

    assert job_run.success is True
    assert is_stale(JOB, 26)
