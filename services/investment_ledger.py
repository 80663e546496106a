"""
Investment Ledger Service
Eligibility queries and the transactional write paths for daily returns
"""

from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from models.investment import (
    Investment, InvestmentReturn, InvestmentStatus, CENT
)
from services.dates import utc_start_of_day

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for ledger write failures; the session is rolled back"""


class InvestmentNotFoundError(LedgerError):
    pass


class ReturnNotFoundError(LedgerError):
    pass


class DuplicateReturnError(LedgerError):
    """A return for this investment and UTC day already exists"""


class InvestmentNotEligibleError(LedgerError):
    """The investment is no longer due a credit for the requested day"""


RecordedReturn = namedtuple('RecordedReturn', ['entry', 'investment', 'completed'])

UNIQUE_PER_DAY_INDEX = 'idx_investment_returns_unique_per_day'


def _is_duplicate_day(error):
    """True when an IntegrityError comes from the one-return-per-day index"""
    message = str(error.orig)
    if UNIQUE_PER_DAY_INDEX in message:
        return True
    # SQLite names the columns instead of the index
    return 'investment_returns.investment_id, investment_returns.return_date' in message


class InvestmentLedger:
    """Ledger operations over investments and investment_returns"""

    @staticmethod
    def list_eligible_investments(as_of_day):
        """Get active investments due a credit on the given UTC day"""
        return Investment.query.filter(
            Investment.eligible_filter(as_of_day)
        ).order_by(Investment.id).all()

    @staticmethod
    def get_investment(investment_id):
        return db.session.get(Investment, investment_id)

    @staticmethod
    def get_returns(investment_id):
        return InvestmentReturn.query.filter_by(investment_id=investment_id).order_by(
            InvestmentReturn.return_date, InvestmentReturn.created_at, InvestmentReturn.id
        ).all()

    @staticmethod
    def _lock_investment(investment_id):
        # Row lock on Postgres; populate_existing discards stale identity-map state
        return db.session.query(Investment).filter(
            Investment.id == investment_id
        ).with_for_update().populate_existing().first()

    @staticmethod
    def record_return(investment_id, amount, return_date):
        """Insert a return and advance the investment's counters in one transaction.

        Raises DuplicateReturnError when the unique per-day index rejects the
        insert and InvestmentNotEligibleError when the locked row is no longer
        due a credit for ``return_date``. Nothing is committed in either case.
        """
        return_date = utc_start_of_day(return_date)
        amount = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)

        try:
            investment = InvestmentLedger._lock_investment(investment_id)
            if investment is None:
                raise InvestmentNotFoundError(f'Investment {investment_id} not found')

            if not investment.is_eligible_on(return_date):
                raise InvestmentNotEligibleError(
                    f'Investment {investment_id} is not eligible for {return_date.date()} '
                    f'(status={investment.status.value}, days_elapsed={investment.days_elapsed}, '
                    f'last_return_applied={investment.last_return_applied})'
                )

            entry = InvestmentReturn(
                investment_id=investment.id,
                user_id=investment.user_id,
                amount=amount,
                return_date=return_date
            )
            db.session.add(entry)
            try:
                db.session.flush()
            except IntegrityError as e:
                if not _is_duplicate_day(e):
                    raise
                raise DuplicateReturnError(
                    f'Return for investment {investment_id} on {return_date.date()} already exists'
                ) from e

            investment.total_earned = Decimal(investment.total_earned or 0) + amount
            investment.days_elapsed += 1
            investment.last_return_applied = return_date

            completed = investment.days_elapsed >= investment.plan_duration
            if completed:
                investment.status = InvestmentStatus.COMPLETED

            db.session.commit()

        except LedgerError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            raise LedgerError(f'Failed to record return for investment {investment_id}: {str(e)}') from e

        return RecordedReturn(entry, investment, completed)

    @staticmethod
    def _apply_recomputed_counters(investment):
        """Rebuild counters from the remaining return rows (session not committed)"""
        rows = InvestmentReturn.query.filter_by(investment_id=investment.id).all()

        total = sum((Decimal(row.amount) for row in rows), Decimal('0'))
        count = len(rows)
        if count > investment.plan_duration:
            logger.warning(
                f'Investment {investment.id} has {count} returns for a {investment.plan_duration}-day plan; '
                f'duplicates need cleanup'
            )

        investment.total_earned = total.quantize(CENT)
        investment.days_elapsed = min(count, investment.plan_duration)
        latest = max((row.return_date for row in rows), default=None)
        investment.last_return_applied = utc_start_of_day(latest) if latest else None
        investment.status = (
            InvestmentStatus.COMPLETED if investment.days_elapsed >= investment.plan_duration
            else InvestmentStatus.ACTIVE
        )
        return investment

    @staticmethod
    def delete_return(return_id):
        """Remove a return row and recompute its investment's counters atomically"""
        try:
            entry = db.session.get(InvestmentReturn, return_id)
            if entry is None:
                raise ReturnNotFoundError(f'Investment return {return_id} not found')

            investment = InvestmentLedger._lock_investment(entry.investment_id)
            db.session.delete(entry)
            db.session.flush()

            InvestmentLedger._apply_recomputed_counters(investment)
            db.session.commit()

        except LedgerError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            raise LedgerError(f'Failed to delete return {return_id}: {str(e)}') from e

        logger.info(
            f'Deleted return {return_id}; investment {investment.id} now days_elapsed={investment.days_elapsed}, '
            f'total_earned={investment.total_earned}'
        )
        return investment

    @staticmethod
    def recompute_counters(investment_id):
        """Recompute total_earned/days_elapsed/last_return_applied/status from returns"""
        try:
            investment = InvestmentLedger._lock_investment(investment_id)
            if investment is None:
                raise InvestmentNotFoundError(f'Investment {investment_id} not found')

            InvestmentLedger._apply_recomputed_counters(investment)
            db.session.commit()

        except LedgerError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            raise LedgerError(f'Failed to recompute investment {investment_id}: {str(e)}') from e

        return investment

    @staticmethod
    def find_exhausted_investments():
        """Active investments whose elapsed days already reached the plan duration"""
        return Investment.query.filter(
            Investment.status == InvestmentStatus.ACTIVE,
            Investment.days_elapsed >= Investment.plan_duration
        ).order_by(Investment.id).all()

    @staticmethod
    def complete_exhausted_investments():
        """Mark exhausted active investments completed; they are never credited again"""
        try:
            exhausted = InvestmentLedger.find_exhausted_investments()
            for investment in exhausted:
                investment.status = InvestmentStatus.COMPLETED
                logger.info(
                    f'Investment {investment.id} status updated to COMPLETED '
                    f'({investment.days_elapsed}/{investment.plan_duration} days)'
                )
            if exhausted:
                db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise LedgerError(f'Failed to complete exhausted investments: {str(e)}') from e

        return exhausted
