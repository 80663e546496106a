#!/usr/bin/env python3
"""
Audit and optionally fix daily_profit mismatches against plan rates
Usage: python scripts/audit_daily_profit.py [--days 7] [--threshold 0.01] [--apply] [--out report.json]
"""

import argparse
import json
import os
import sys

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv


def build_parser():
    parser = argparse.ArgumentParser(description='Audit investment daily_profit drift')
    parser.add_argument('--days', type=int, default=7, help='Look back this many days of investments')
    parser.add_argument('--threshold', type=float, default=None,
                        help='Allowed drift in percentage points (default: DRIFT_THRESHOLD)')
    parser.add_argument('--apply', action='store_true', help='Write the plan rate to drifted investments')
    parser.add_argument('--out', help='Write a JSON report to this path')
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
        threshold = args.threshold if args.threshold is not None else app.config['DRIFT_THRESHOLD']
        print(f"[audit-daily-profit] Scanning investments (days={args.days}) "
              f"APPLY={'yes' if args.apply else 'no'} THRESHOLD={threshold}")

        mismatches = ReconciliationService.find_rate_drift(days=args.days, threshold=threshold)
        if not mismatches:
            print("[audit-daily-profit] No daily_profit mismatches found in the selected window.")
            return 0

        print(f"[audit-daily-profit] Found {len(mismatches)} mismatched investment(s):")
        for m in mismatches:
            print(
                f"  - id={m['id']} plan='{m['plan_name']}' created_at={m['created_at']} "
                f"current={m['current']:.2f} expected={m['expected']:.2f} "
                f"delta={m['delta']:.2f} principal={m['principal']:.2f}"
            )

        if args.out:
            with open(args.out, 'w') as f:
                json.dump({'days': args.days, 'threshold': threshold, 'mismatches': mismatches}, f, indent=2)
            print(f"[audit-daily-profit] Wrote JSON report to {args.out}")

        if not args.apply:
            print("[audit-daily-profit] Dry run mode (no updates applied). Use --apply to write fixes.")
            return 0

        fixed = ReconciliationService.fix_rate_drift(mismatches, apply=True)
        print(f"[audit-daily-profit] Completed. fixed={fixed}/{len(mismatches)}")
        return 0 if fixed == len(mismatches) else 1


if __name__ == '__main__':
    sys.exit(main())
