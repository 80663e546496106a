"""
Daily Accrual Engine
Credits one day's return to every eligible investment, at most once per UTC day
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db, JobRun, require_plan, UnknownPlanError
from models.investment import calculate_daily_amount
from services.dates import utc_start_of_day
from services.investment_ledger import (
    InvestmentLedger, LedgerError, DuplicateReturnError, InvestmentNotEligibleError
)
from services.job_monitor import start_job_run, finish_job_run

logger = logging.getLogger(__name__)

DEFAULT_JOB_NAME = 'daily-investments'


class RowOutcome(Enum):
    """Result of processing one investment in a run"""
    CREDITED = 'credited'
    COMPLETED = 'completed'  # credited, and the credit finished the term
    SKIPPED = 'skipped'      # already credited for the day
    FAILED = 'failed'


class RunCounters:
    """Per-run tallies written to the JobRun row"""

    def __init__(self):
        self.processed = 0
        self.completed = 0
        self.skipped = 0
        self.failed = 0
        self.total_applied = Decimal('0')

    def add(self, outcome, amount):
        if outcome in (RowOutcome.CREDITED, RowOutcome.COMPLETED):
            self.processed += 1
            self.total_applied += amount
            if outcome == RowOutcome.COMPLETED:
                self.completed += 1
        elif outcome == RowOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def as_job_fields(self):
        return {
            'processed_count': self.processed,
            'completed_count': self.completed,
            'skipped_count': self.skipped,
            'failed_count': self.failed,
            'total_applied': self.total_applied
        }


class AccrualEngine:
    """Service class for the daily investment return job"""

    @staticmethod
    def _job_name():
        try:
            return current_app.config.get('DAILY_JOB_NAME', DEFAULT_JOB_NAME)
        except RuntimeError:
            return DEFAULT_JOB_NAME

    @staticmethod
    def run_daily_accrual(as_of=None, source='cron', dry_run=False, job_name=None):
        """Run the accrual for one UTC day and return the finalized JobRun.

        ``as_of`` defaults to the current UTC day; any date, datetime or ISO
        string is normalized to its UTC start-of-day. Re-running for a day
        that was already processed credits nothing.
        """
        job_name = job_name or AccrualEngine._job_name()
        as_of_day = utc_start_of_day(as_of)

        logger.info(
            f'Starting daily investment accrual for {as_of_day.date()} '
            f'(source={source}, dry_run={dry_run})'
        )

        try:
            job_run = start_job_run(job_name, source=source, as_of_day=as_of_day, dry_run=dry_run)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f'Could not record start of {job_name} run: {str(e)}')
            job_run = JobRun(job_name=job_name, source=source, as_of_day=as_of_day, dry_run=dry_run)
            job_run.started_at = datetime.utcnow()
            job_run.finalize(False, error_text=f'Could not record job run: {str(e)}')
            return job_run

        counters = RunCounters()

        try:
            if dry_run:
                counters.completed += len(InvestmentLedger.find_exhausted_investments())
            else:
                counters.completed += len(InvestmentLedger.complete_exhausted_investments())

            eligible = InvestmentLedger.list_eligible_investments(as_of_day)
        except (SQLAlchemyError, LedgerError) as e:
            db.session.rollback()
            logger.error(f'Daily accrual aborted, could not load eligible investments: {str(e)}')
            return AccrualEngine._finalize(job_run, False, counters, error_text=str(e))

        logger.info(f'Found {len(eligible)} investments eligible for returns on {as_of_day.date()}')

        for investment_id, investment in [(inv.id, inv) for inv in eligible]:
            try:
                outcome, amount = AccrualEngine._process_investment(investment, as_of_day, dry_run)
            except Exception as e:
                db.session.rollback()
                logger.error(f'Error processing investment {investment_id}: {str(e)}')
                outcome, amount = RowOutcome.FAILED, Decimal('0')
            counters.add(outcome, amount)

        logger.info(
            f'Daily accrual completed for {as_of_day.date()}. Processed: {counters.processed}, '
            f'Completed: {counters.completed}, Skipped: {counters.skipped}, '
            f'Failed: {counters.failed}, Total: ${counters.total_applied}'
        )

        return AccrualEngine._finalize(job_run, True, counters)

    @staticmethod
    def _process_investment(investment, as_of_day, dry_run):
        """Credit one investment; returns (outcome, amount credited)"""
        try:
            require_plan(investment.plan_name)
        except UnknownPlanError as e:
            logger.error(f'Investment {investment.id} skipped: {str(e)}')
            return RowOutcome.FAILED, Decimal('0')

        # Always the investment's own locked-in rate, never the plan's current one
        amount = calculate_daily_amount(investment.principal_amount, investment.daily_profit)
        if amount < 0:
            logger.error(
                f'Investment {investment.id} skipped: negative daily_profit {investment.daily_profit}'
            )
            return RowOutcome.FAILED, Decimal('0')

        if dry_run:
            finishes = investment.days_elapsed + 1 >= investment.plan_duration
            logger.debug(f'[dry-run] Would credit investment {investment.id}: ${amount}')
            return (RowOutcome.COMPLETED if finishes else RowOutcome.CREDITED), amount

        try:
            recorded = InvestmentLedger.record_return(investment.id, amount, as_of_day)
        except (DuplicateReturnError, InvestmentNotEligibleError) as e:
            logger.info(f'Investment {investment.id} already credited for {as_of_day.date()}: {str(e)}')
            return RowOutcome.SKIPPED, Decimal('0')
        except LedgerError as e:
            logger.error(f'Failed to process return for investment {investment.id}: {str(e)}')
            return RowOutcome.FAILED, Decimal('0')

        logger.debug(
            f'Processed return for investment {investment.id}: ${amount} '
            f'(day {recorded.investment.days_elapsed}/{recorded.investment.plan_duration})'
        )
        if recorded.completed:
            logger.info(f'Investment {investment.id} completed after {recorded.investment.days_elapsed} days')
            return RowOutcome.COMPLETED, amount
        return RowOutcome.CREDITED, amount

    @staticmethod
    def _finalize(job_run, success, counters, error_text=None):
        try:
            finish_job_run(job_run, success, error_text=error_text, **counters.as_job_fields())
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f'Could not finalize job run {job_run.id}: {str(e)}')
        return job_run


def run_daily_accrual(as_of=None, source='cron', dry_run=False, job_name=None):
    """Trigger entry point: run the daily accrual now"""
    return AccrualEngine.run_daily_accrual(as_of=as_of, source=source, dry_run=dry_run, job_name=job_name)
