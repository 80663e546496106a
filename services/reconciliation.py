"""
Reconciliation Service
Offline audits and repairs of ledger drift: duplicate, early or mis-sized
returns, daily-rate drift and counter mismatches. Every repair is a dry run
unless ``apply=True`` and goes through the ledger's transactional paths.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
import logging

from sqlalchemy.exc import SQLAlchemyError

from models import db, plan_by_name
from models.investment import Investment, InvestmentReturn, calculate_daily_amount
from services.dates import utc_start_of_day, is_utc_midnight, day_range, days_ago
from services.investment_ledger import InvestmentLedger, LedgerError

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Service class for ledger audits and repairs"""

    # ------------------------------------------------------------------
    # Daily rate drift
    # ------------------------------------------------------------------

    @staticmethod
    def find_rate_drift(days=7, threshold=0.01, now=None):
        """Investments created in the window whose daily_profit differs from their plan"""
        since = days_ago(days, now)
        investments = Investment.query.filter(
            Investment.created_at >= since
        ).order_by(Investment.created_at.desc()).all()

        threshold = Decimal(str(threshold))
        mismatches = []
        for investment in investments:
            plan = plan_by_name(investment.plan_name)
            if plan is None:
                logger.warning(f"Investment {investment.id} unknown plan '{investment.plan_name}', skipping")
                continue

            current = Decimal(investment.daily_profit)
            delta = abs(current - plan.daily_profit)
            if delta > threshold:
                mismatches.append({
                    'id': investment.id,
                    'plan_name': investment.plan_name,
                    'status': investment.status.value,
                    'created_at': investment.created_at.isoformat(),
                    'principal': float(investment.principal_amount),
                    'current': float(current),
                    'expected': float(plan.daily_profit),
                    'delta': float(delta)
                })

        return mismatches

    @staticmethod
    def fix_rate_drift(mismatches, apply=False):
        """Reset drifted daily_profit values to the plan rate; returns fixed count"""
        if not apply:
            logger.info(f'Dry run: {len(mismatches)} daily_profit mismatches left unchanged')
            return 0

        fixed = 0
        for mismatch in mismatches:
            investment = db.session.get(Investment, mismatch['id'])
            if investment is None:
                continue
            try:
                investment.daily_profit = Decimal(str(mismatch['expected']))
                db.session.commit()
                fixed += 1
                logger.info(
                    f"Updated investment {investment.id}: daily_profit "
                    f"{mismatch['current']:.2f} -> {mismatch['expected']:.2f}"
                )
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"Failed to update investment {mismatch['id']}: {str(e)}")

        return fixed

    # ------------------------------------------------------------------
    # Return row audits
    # ------------------------------------------------------------------

    @staticmethod
    def _returns_since(days, now=None):
        query = InvestmentReturn.query
        if days is not None:
            query = query.filter(InvestmentReturn.return_date >= days_ago(days, now))
        return query.order_by(
            InvestmentReturn.investment_id, InvestmentReturn.return_date,
            InvestmentReturn.created_at, InvestmentReturn.id
        ).all()

    @staticmethod
    def find_duplicate_returns(days=None, now=None):
        """Groups of returns sharing an investment and UTC calendar day, earliest first"""
        groups = defaultdict(list)
        for row in ReconciliationService._returns_since(days, now):
            key = (row.investment_id, utc_start_of_day(row.return_date))
            groups[key].append(row)

        return [
            {'investment_id': key[0], 'day': key[1], 'rows': rows}
            for key, rows in groups.items() if len(rows) > 1
        ]

    @staticmethod
    def cleanup_duplicate_returns(apply=False, days=None):
        """Keep the earliest created return per investment/day and delete the rest"""
        duplicates = ReconciliationService.find_duplicate_returns(days)
        to_delete = [row.id for group in duplicates for row in group['rows'][1:]]
        logger.info(f'Found {len(duplicates)} groups with duplicates ({len(to_delete)} extra rows)')

        if not apply:
            return {'groups': len(duplicates), 'deleted': 0, 'candidates': to_delete}

        deleted = 0
        for return_id in to_delete:
            try:
                InvestmentLedger.delete_return(return_id)
                deleted += 1
            except LedgerError as e:
                logger.error(f'Error deleting return {return_id}: {str(e)}')

        return {'groups': len(duplicates), 'deleted': deleted, 'candidates': to_delete}

    @staticmethod
    def find_non_midnight_returns(days=None, now=None):
        """Returns whose return_date is a wall-clock instant instead of UTC start-of-day"""
        return [
            row for row in ReconciliationService._returns_since(days, now)
            if not is_utc_midnight(row.return_date)
        ]

    @staticmethod
    def find_early_returns(days=14, threshold_minutes=60, now=None):
        """Returns inserted at least ``threshold_minutes`` before their return_date"""
        since = days_ago(days, now)
        rows = InvestmentReturn.query.filter(
            InvestmentReturn.created_at >= since
        ).order_by(InvestmentReturn.created_at.desc()).all()

        early = []
        for row in rows:
            minutes_early = round((row.return_date - row.created_at).total_seconds() / 60)
            if minutes_early >= threshold_minutes:
                early.append({'row': row, 'minutes_early': minutes_early})
        return early

    @staticmethod
    def find_amount_mismatches(days=14, threshold=0.01, now=None):
        """Returns whose amount differs from principal * current daily_profit / 100"""
        threshold = Decimal(str(threshold))
        rows = db.session.query(InvestmentReturn, Investment).join(
            Investment, InvestmentReturn.investment_id == Investment.id
        ).filter(
            InvestmentReturn.return_date >= days_ago(days, now)
        ).order_by(InvestmentReturn.return_date.desc()).all()

        mismatches = []
        for row, investment in rows:
            expected = calculate_daily_amount(investment.principal_amount, investment.daily_profit)
            current = Decimal(row.amount)
            delta = abs(current - expected)
            if delta > threshold:
                mismatches.append({
                    'return_id': row.id,
                    'investment_id': investment.id,
                    'plan_name': investment.plan_name,
                    'return_date': row.return_date.isoformat(),
                    'current': float(current),
                    'expected': float(expected),
                    'delta': float(delta),
                    'principal': float(investment.principal_amount),
                    'rate': float(investment.daily_profit)
                })
        return mismatches

    # ------------------------------------------------------------------
    # Counter reconciliation
    # ------------------------------------------------------------------

    @staticmethod
    def find_total_mismatches(tolerance=0.01):
        """Investments whose counters disagree with their return rows"""
        sums = dict(
            (investment_id, (Decimal(total or 0), count))
            for investment_id, total, count in db.session.query(
                InvestmentReturn.investment_id,
                db.func.sum(InvestmentReturn.amount),
                db.func.count(InvestmentReturn.id)
            ).group_by(InvestmentReturn.investment_id).all()
        )

        tolerance = Decimal(str(tolerance))
        mismatches = []
        for investment in Investment.query.order_by(Investment.id).all():
            total, count = sums.get(investment.id, (Decimal('0'), 0))
            reported = Decimal(investment.total_earned or 0)
            if abs(reported - total) > tolerance or investment.days_elapsed != min(count, investment.plan_duration):
                mismatches.append({
                    'investment_id': investment.id,
                    'reported_total': float(reported),
                    'returns_total': float(total),
                    'days_elapsed': investment.days_elapsed,
                    'return_count': count
                })
        return mismatches

    @staticmethod
    def reconcile_totals(apply=False, tolerance=0.01):
        """Recompute counters for every mismatched investment"""
        mismatches = ReconciliationService.find_total_mismatches(tolerance)
        fixed = 0
        for mismatch in mismatches:
            logger.info(
                f"Investment {mismatch['investment_id']} needs fix: reported={mismatch['reported_total']} "
                f"returns={mismatch['returns_total']} days={mismatch['days_elapsed']}/{mismatch['return_count']}"
            )
            if apply:
                try:
                    InvestmentLedger.recompute_counters(mismatch['investment_id'])
                    fixed += 1
                except LedgerError as e:
                    logger.error(f"Failed to reconcile investment {mismatch['investment_id']}: {str(e)}")
        return {'scanned': Investment.query.count(), 'mismatches': mismatches, 'fixed': fixed, 'dry_run': not apply}

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    @staticmethod
    def rollback_return(investment_id, day, apply=False):
        """Undo the earliest created return of an investment on a UTC day.

        Returns the candidate row's dict (or None when the day has no returns).
        """
        start, end = day_range(day)
        candidate = InvestmentReturn.query.filter(
            InvestmentReturn.investment_id == investment_id,
            InvestmentReturn.return_date >= start,
            InvestmentReturn.return_date < end
        ).order_by(InvestmentReturn.created_at, InvestmentReturn.id).first()

        if candidate is None:
            logger.info(f'No returns found for investment {investment_id} on {start.date()}')
            return None

        result = candidate.to_dict()
        logger.info(
            f"Rollback candidate return id={candidate.id} amount=${result['amount']:.2f} "
            f"return_date={result['return_date']}"
        )
        if apply:
            investment = InvestmentLedger.delete_return(candidate.id)
            result['investment'] = investment.to_dict()
            result['rolled_back_at'] = datetime.utcnow().isoformat()
        return result
