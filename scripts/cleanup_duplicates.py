#!/usr/bin/env python3
"""
Clean up duplicate investment returns (same investment and UTC day)
Keeps the earliest created row of each group and recomputes the investment counters.
Usage: python scripts/cleanup_duplicates.py [--days N] [--apply] [--reconcile]
"""

import argparse
import os
import sys

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv


def build_parser():
    parser = argparse.ArgumentParser(description='Remove duplicate investment returns')
    parser.add_argument('--days', type=int, default=None, help='Only scan returns this recent')
    parser.add_argument('--apply', action='store_true', help='Delete duplicates (default is a dry run)')
    parser.add_argument('--reconcile', action='store_true',
                        help='Also recompute counters of every investment whose totals disagree')
    return parser


def main(argv=None, app=None):
    args = build_parser().parse_args(argv)

    if app is None:
        load_dotenv()
        from app import create_app
        from config import config
        app = create_app(config.get(os.environ.get('FLASK_ENV', 'default'), config['default']))

    from services.reconciliation import ReconciliationService

    with app.app_context():
        print("=== CLEANING UP DUPLICATE INVESTMENT RETURNS ===")
        result = ReconciliationService.cleanup_duplicate_returns(apply=args.apply, days=args.days)
        print(f"Found {result['groups']} groups with duplicates")

        if not args.apply:
            print(f"Dry run: would delete {len(result['candidates'])} return(s): {result['candidates']}")
        else:
            print(f"Total duplicates deleted: {result['deleted']}")

        if args.reconcile:
            totals = ReconciliationService.reconcile_totals(apply=args.apply)
            print(f"Counter reconciliation: mismatches={len(totals['mismatches'])} fixed={totals['fixed']}")

    if args.apply and result['deleted'] != len(result['candidates']):
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
