#!/usr/bin/env python3
"""
Check daily-investments job health from the job_runs audit log
Usage: python scripts/check_job_health.py [--hours 26] [--json] [--strict]
Exits 3 when stale and --strict is given, so it can drive CI/cron alerting.
"""

import argparse
import json
import os
import sys

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

EXIT_OK = 0
EXIT_QUERY_ERROR = 2
EXIT_STALE = 3


def build_parser():
    parser = argparse.ArgumentParser(description='Daily accrual job health check')
    parser.add_argument('--hours', type=float, default=None,
                        help='Stale threshold in hours (default: JOB_STALE_HOURS)')
    parser.add_argument('--json', action='store_true', help='Print the full health payload as JSON')
    parser.add_argument('--strict', action='store_true', help='Exit non-zero when the job is stale')
    parser.add_argument('--job', default=None, help='Job name (default: DAILY_JOB_NAME)')
    return parser


def main(argv=None, app=None):
    args = build_parser().parse_args(argv)

    if app is None:
        load_dotenv()
        from app import create_app
        from config import config
        app = create_app(config.get(os.environ.get('FLASK_ENV', 'default'), config['default']))

    from services.job_monitor import get_job_health

    with app.app_context():
        hours = args.hours if args.hours is not None else app.config['JOB_STALE_HOURS']
        job_name = args.job or app.config['DAILY_JOB_NAME']
        try:
            health = get_job_health(job_name, hours)
        except SQLAlchemyError as e:
            print(f"[job-health] Query error: {str(e)}", file=sys.stderr)
            return EXIT_QUERY_ERROR

    if args.json:
        print(json.dumps(health, indent=2))
    else:
        last = health['last_run']
        print(
            f"[job-health] stale={health['stale']} (threshold {hours}h) "
            f"lastRun={last['started_at'] if last else 'none'} "
            f"successRate={health['stats']['success_rate']}"
        )
        if last:
            print(
                f"[job-health] last metrics processed={last['processed_count']} "
                f"completed={last['completed_count']} totalApplied={last['total_applied']}"
            )

    if args.strict and health['stale']:
        return EXIT_STALE
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
