#!/usr/bin/env python3
"""
Run the daily investment accrual job once
Usage: python scripts/run_daily_accrual.py [--as-of YYYY-MM-DD] [--dry-run] [--source manual]
"""

import argparse
import json
import os
import sys

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv


def build_parser():
    parser = argparse.ArgumentParser(description='Run the AxixFinance daily accrual job')
    parser.add_argument('--as-of', help='UTC day to accrue for (default: today)')
    parser.add_argument('--dry-run', action='store_true', help='Compute credits without writing them')
    parser.add_argument('--source', default='manual', help='Trigger origin recorded on the job run')
    parser.add_argument('--json', action='store_true', help='Print the job run as JSON')
    return parser


def main(argv=None, app=None):
    args = build_parser().parse_args(argv)

    if app is None:
        load_dotenv()
        from app import create_app
        from config import config
        app = create_app(config.get(os.environ.get('FLASK_ENV', 'default'), config['default']))

    from services.accrual_engine import run_daily_accrual

    with app.app_context():
        try:
            job_run = run_daily_accrual(as_of=args.as_of, source=args.source, dry_run=args.dry_run)
        except ValueError as e:
            print(f"[daily-accrual] {str(e)}", file=sys.stderr)
            return 1
        result = job_run.to_dict()

    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print(
            f"[daily-accrual] as_of={result['as_of_day']} success={result['success']} "
            f"processed={result['processed_count']} completed={result['completed_count']} "
            f"skipped={result['skipped_count']} failed={result['failed_count']} "
            f"total_applied={result['total_applied']:.2f} dry_run={result['dry_run']}"
        )
        if result['error_text']:
            print(f"[daily-accrual] error: {result['error_text']}")

    return 0 if result['success'] else 2


if __name__ == '__main__':
    sys.exit(main())
