#!/usr/bin/env python3
"""
Roll back an early or erroneous daily return
Deletes the earliest created return of an investment on a UTC day and
recomputes total_earned, days_elapsed and last_return_applied.
Usage: python scripts/rollback_return.py --investment <id> --date <YYYY-MM-DD> [--apply]
"""

import argparse
import os
import sys

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv


def build_parser():
    parser = argparse.ArgumentParser(description='Roll back one investment return')
    parser.add_argument('--investment', type=int, required=True, help='Investment id')
    parser.add_argument('--date', required=True, help='UTC day of the return (YYYY-MM-DD)')
    parser.add_argument('--apply', action='store_true', help='Execute the rollback (default is a dry run)')
    return parser


def main(argv=None, app=None):
    args = build_parser().parse_args(argv)

    if app is None:
        load_dotenv()
        from app import create_app
        from config import config
        app = create_app(config.get(os.environ.get('FLASK_ENV', 'default'), config['default']))

    from services.investment_ledger import InvestmentLedger, LedgerError
    from services.reconciliation import ReconciliationService

    with app.app_context():
        print(f"[rollback] Inspecting investment {args.investment} for date {args.date}")

        investment = InvestmentLedger.get_investment(args.investment)
        if investment is None:
            print(f"[rollback] Investment not found: {args.investment}", file=sys.stderr)
            return 2

        before = investment.to_dict()
        try:
            result = ReconciliationService.rollback_return(args.investment, args.date, apply=args.apply)
        except ValueError as e:
            print(f"[rollback] {str(e)}", file=sys.stderr)
            return 1
        except LedgerError as e:
            print(f"[rollback] Failed: {str(e)}", file=sys.stderr)
            return 4

        if result is None:
            print("[rollback] No returns found on that date.")
            return 0

        print(
            f"[rollback] Candidate return id={result['id']} amount=${result['amount']:.2f} "
            f"return_date={result['return_date']}"
        )
        if not args.apply:
            print("[rollback] Dry-run. Use --apply to execute updates.")
            return 0

        after = result['investment']
        print(
            f"[rollback] Success. Updated investment {args.investment}: "
            f"total_earned {before['total_earned']:.2f} -> {after['total_earned']:.2f}, "
            f"days_elapsed {before['days_elapsed']} -> {after['days_elapsed']}, "
            f"last_return_applied -> {after['last_return_applied'] or '(none)'}"
        )
    return 0


if __name__ == '__main__':
    sys.exit(main())
