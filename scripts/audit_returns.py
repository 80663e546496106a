#!/usr/bin/env python3
"""
Audit recent investment returns for ledger drift
Reports duplicate days, non-midnight return dates, early inserts, amount
mismatches and investments whose counters disagree with their returns.
Usage: python scripts/audit_returns.py [--days 14] [--threshold 0.01] [--threshold-min 60] [--json]
"""

import argparse
import json
import os
import sys

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv


def build_parser():
    parser = argparse.ArgumentParser(description='Audit investment returns')
    parser.add_argument('--days', type=int, default=14, help='Look back this many days of returns')
    parser.add_argument('--threshold', type=float, default=None,
                        help='Amount tolerance (default: AMOUNT_THRESHOLD)')
    parser.add_argument('--threshold-min', type=int, default=None,
                        help='Minutes early before a return is flagged (default: EARLY_RETURN_THRESHOLD_MINUTES)')
    parser.add_argument('--json', action='store_true', help='Print the report as JSON')
    return parser


def _fmt_row(row):
    return (
        f"#{row.id} inv={row.investment_id} user={row.user_id} amount=${float(row.amount):.2f} "
        f"return_date={row.return_date.isoformat()} created_at={row.created_at.isoformat()}"
    )


def main(argv=None, app=None):
    args = build_parser().parse_args(argv)

    if app is None:
        load_dotenv()
        from app import create_app
        from config import config
        app = create_app(config.get(os.environ.get('FLASK_ENV', 'default'), config['default']))

    from services.reconciliation import ReconciliationService

    with app.app_context():
        threshold = args.threshold if args.threshold is not None else app.config['AMOUNT_THRESHOLD']
        threshold_min = args.threshold_min if args.threshold_min is not None \
            else app.config['EARLY_RETURN_THRESHOLD_MINUTES']

        duplicates = ReconciliationService.find_duplicate_returns(days=args.days)
        non_midnight = ReconciliationService.find_non_midnight_returns(days=args.days)
        early = ReconciliationService.find_early_returns(days=args.days, threshold_minutes=threshold_min)
        amounts = ReconciliationService.find_amount_mismatches(days=args.days, threshold=threshold)
        totals = ReconciliationService.find_total_mismatches(tolerance=threshold)

        report = {
            'days': args.days,
            'duplicates': [
                {
                    'investment_id': group['investment_id'],
                    'day': group['day'].date().isoformat(),
                    'return_ids': [row.id for row in group['rows']]
                }
                for group in duplicates
            ],
            'non_utc_midnight': [row.id for row in non_midnight],
            'early': [{'return_id': item['row'].id, 'minutes_early': item['minutes_early']} for item in early],
            'amount_mismatches': amounts,
            'total_mismatches': totals
        }

        if args.json:
            print(json.dumps(report, indent=2))
        else:
            print(
                f"[audit-returns] Summary: duplicates={len(duplicates)} nonUtcMidnight={len(non_midnight)} "
                f"early={len(early)} amountMismatches={len(amounts)} totalMismatches={len(totals)}"
            )
            for group in duplicates:
                print(f"- {group['investment_id']}|{group['day'].date()} x{len(group['rows'])}")
                for row in group['rows']:
                    print(f"   {_fmt_row(row)}")
            for row in non_midnight:
                print(f"   [non-midnight] {_fmt_row(row)}")
            for item in early[:50]:
                print(f"   [early {item['minutes_early']}m] {_fmt_row(item['row'])}")
            for m in amounts:
                print(
                    f"   [amount] returnId={m['return_id']} inv={m['investment_id']} "
                    f"current={m['current']:.2f} expected={m['expected']:.2f} delta={m['delta']:.2f}"
                )
            for m in totals:
                print(
                    f"   [totals] inv={m['investment_id']} reported={m['reported_total']:.2f} "
                    f"returns={m['returns_total']:.2f} days={m['days_elapsed']} rows={m['return_count']}"
                )

    clean = not (duplicates or non_midnight or early or amounts or totals)
    return 0 if clean else 1


if __name__ == '__main__':
    sys.exit(main())
