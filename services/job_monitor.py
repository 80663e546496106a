"""
Job Run Audit Service for AxixFinance
Records job executions and answers health-check questions about them
"""

from datetime import datetime
import logging

from models import db, JobRun
from services.dates import isoformat_utc

logger = logging.getLogger(__name__)


def start_job_run(job_name, source='cron', as_of_day=None, dry_run=False):
    """Insert the row for a run that is starting now"""
    job_run = JobRun(
        job_name=job_name,
        source=source,
        as_of_day=as_of_day,
        dry_run=dry_run,
        started_at=datetime.utcnow()
    )
    db.session.add(job_run)
    db.session.commit()
    return job_run


def finish_job_run(job_run, success, **counts):
    """Finalize a started run (counts: processed_count, completed_count, ...)"""
    job_run.finalize(success, **counts)
    db.session.commit()
    return job_run


def record_job_run(job_name, started_at, finished_at, success, source='cron',
                   processed_count=0, completed_count=0, total_applied=0, error_text=None):
    """Append a complete job run record in one step"""
    job_run = JobRun(
        job_name=job_name,
        started_at=started_at,
        finished_at=finished_at,
        success=success,
        source=source,
        processed_count=processed_count,
        completed_count=completed_count,
        total_applied=total_applied,
        error_text=error_text
    )
    db.session.add(job_run)
    db.session.commit()
    return job_run


def get_last_run(job_name):
    return JobRun.get_last_run(job_name)


def get_recent_runs(job_name, limit=10):
    return JobRun.get_recent_runs(job_name, limit)


def is_stale(job_name, threshold_hours, now=None):
    return JobRun.is_stale(job_name, threshold_hours, now=now)


def get_job_health(job_name, threshold_hours, limit=10, now=None):
    """Health payload for monitoring: staleness plus stats over recent runs"""
    now = now or datetime.utcnow()
    recent = get_recent_runs(job_name, limit)
    last = recent[0] if recent else None
    # Dry runs write nothing, so they are reported but kept out of the stats
    runs = [run for run in recent if not run.dry_run]
    last_success = JobRun.get_last_successful_run(job_name)

    successes = len([run for run in runs if run.success])
    failures = len([run for run in runs if run.success is False])

    if runs:
        success_rate = round(successes / len(runs), 3)
        avg_processed = round(sum(run.processed_count or 0 for run in runs) / len(runs))
        avg_completed = round(sum(run.completed_count or 0 for run in runs) / len(runs))
    else:
        success_rate = 0
        avg_processed = 0
        avg_completed = 0

    hours_since_success = None
    if last_success:
        hours_since_success = round((now - last_success.started_at).total_seconds() / 3600, 2)

    return {
        'job_name': job_name,
        'stale': is_stale(job_name, threshold_hours, now=now),
        'stale_threshold_hours': threshold_hours,
        'now': isoformat_utc(now),
        'hours_since_last_success': hours_since_success,
        'last_run': last.to_dict() if last else None,
        'last_successful_run': last_success.to_dict() if last_success else None,
        'recent_count': len(recent),
        'dry_run_count': len(recent) - len(runs),
        'stats': {
            'successes': successes,
            'failures': failures,
            'success_rate': success_rate,
            'avg_processed': avg_processed,
            'avg_completed': avg_completed
        }
    }
