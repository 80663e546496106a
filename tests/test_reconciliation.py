"""
Offline audits and repairs over investments and their returns
"""

from datetime import datetime
from decimal import Decimal

from models import Investment, InvestmentReturn, InvestmentStatus
from services.investment_ledger import InvestmentLedger
from services.reconciliation import ReconciliationService

OCT_1 = datetime(2025, 10, 1)
OCT_2 = datetime(2025, 10, 2)
NOW = datetime(2025, 10, 5, 12, 0)


class TestRateDrift:

    def test_finds_and_fixes_drifted_rate(self, db, make_investment):
        drifted = make_investment(daily_profit=Decimal('3.0'))
        make_investment(user_id='user-2')

        mismatches = ReconciliationService.find_rate_drift(days=7)

        assert [m['id'] for m in mismatches] == [drifted.id]
        assert mismatches[0]['current'] == 3.0
        assert mismatches[0]['expected'] == 3.5
        assert mismatches[0]['delta'] == 0.5

        assert ReconciliationService.fix_rate_drift(mismatches) == 0
        assert db.session.get(Investment, drifted.id).daily_profit == Decimal('3.0')

        assert ReconciliationService.fix_rate_drift(mismatches, apply=True) == 1
        assert db.session.get(Investment, drifted.id).daily_profit == Decimal('3.5')

    def test_unknown_plan_is_ignored(self, make_investment):
        make_investment(plan_name='GOLD PLAN', daily_profit=Decimal('9'))
        assert ReconciliationService.find_rate_drift(days=7) == []


class TestDuplicates:

    def test_legacy_wall_clock_rows_grouped_by_day(self, make_investment, make_return):
        investment = make_investment()
        make_return(investment, OCT_1)
        make_return(investment, datetime(2025, 10, 1, 9, 15))
        make_return(investment, OCT_2)

        groups = ReconciliationService.find_duplicate_returns()

        assert len(groups) == 1
        assert groups[0]['investment_id'] == investment.id
        assert groups[0]['day'] == OCT_1
        assert [row.return_date for row in groups[0]['rows']] == [OCT_1, datetime(2025, 10, 1, 9, 15)]

    def test_cleanup_keeps_earliest_and_recomputes(self, make_investment, make_return):
        investment = make_investment(days_elapsed=3, total_earned=Decimal('105.00'),
                                     last_return_applied=OCT_2)
        keep_id = make_return(investment, OCT_1).id
        extra_id = make_return(investment, datetime(2025, 10, 1, 9, 15)).id
        make_return(investment, OCT_2)

        dry = ReconciliationService.cleanup_duplicate_returns()
        assert dry == {'groups': 1, 'deleted': 0, 'candidates': [extra_id]}
        assert InvestmentReturn.query.count() == 3

        result = ReconciliationService.cleanup_duplicate_returns(apply=True)

        assert result['deleted'] == 1
        remaining = [row.id for row in InvestmentLedger.get_returns(investment.id)]
        assert len(remaining) == 2
        assert keep_id in remaining and extra_id not in remaining
        investment = InvestmentLedger.get_investment(investment.id)
        assert investment.days_elapsed == 2
        assert investment.total_earned == Decimal('70.00')

    def test_cleanup_of_wall_clock_rows_stores_start_of_day(self, make_investment, make_return):
        investment = make_investment(days_elapsed=2, total_earned=Decimal('70.00'),
                                     last_return_applied=datetime(2025, 10, 1, 18, 0))
        make_return(investment, datetime(2025, 10, 1, 9, 15))
        make_return(investment, datetime(2025, 10, 1, 18, 0))

        result = ReconciliationService.cleanup_duplicate_returns(apply=True)

        assert result['deleted'] == 1
        investment = InvestmentLedger.get_investment(investment.id)
        assert investment.last_return_applied == OCT_1
        assert investment.days_elapsed == 1

    def test_non_midnight_returns(self, make_investment, make_return):
        investment = make_investment()
        make_return(investment, OCT_1)
        legacy = make_return(investment, datetime(2025, 10, 2, 0, 5))

        assert [row.id for row in ReconciliationService.find_non_midnight_returns()] == [legacy.id]


class TestReturnAudits:

    def test_early_returns(self, make_investment, make_return):
        investment = make_investment()
        early = make_return(investment, OCT_2, created_at=datetime(2025, 10, 1, 22, 30))
        make_return(investment, OCT_1, created_at=datetime(2025, 10, 1, 0, 5))

        found = ReconciliationService.find_early_returns(days=14, threshold_minutes=60, now=NOW)

        assert len(found) == 1
        assert found[0]['row'].id == early.id
        assert found[0]['minutes_early'] == 90

    def test_amount_mismatches(self, make_investment, make_return):
        investment = make_investment()
        make_return(investment, OCT_1)
        wrong = make_return(investment, OCT_2, amount=Decimal('40.00'))

        mismatches = ReconciliationService.find_amount_mismatches(days=14, now=NOW)

        assert len(mismatches) == 1
        assert mismatches[0]['return_id'] == wrong.id
        assert mismatches[0]['expected'] == 35.0
        assert mismatches[0]['delta'] == 5.0


class TestTotals:

    def test_reconcile_totals(self, make_investment, make_return):
        investment = make_investment()
        make_return(investment, OCT_1)
        make_return(investment, OCT_2)
        make_investment(user_id='user-2')

        dry = ReconciliationService.reconcile_totals()
        assert dry['dry_run'] is True
        assert dry['scanned'] == 2
        assert [m['investment_id'] for m in dry['mismatches']] == [investment.id]
        assert dry['fixed'] == 0

        applied = ReconciliationService.reconcile_totals(apply=True)
        assert applied['fixed'] == 1

        investment = InvestmentLedger.get_investment(investment.id)
        assert investment.days_elapsed == 2
        assert investment.total_earned == Decimal('70.00')
        assert ReconciliationService.find_total_mismatches() == []


class TestRollback:

    def test_rollback_dry_run_then_apply(self, make_investment):
        investment = make_investment(plan_duration=2)
        InvestmentLedger.record_return(investment.id, Decimal('35.00'), OCT_1)
        InvestmentLedger.record_return(investment.id, Decimal('35.00'), OCT_2)
        assert InvestmentLedger.get_investment(investment.id).status == InvestmentStatus.COMPLETED

        preview = ReconciliationService.rollback_return(investment.id, '2025-10-02')
        assert preview['amount'] == 35.0
        assert 'investment' not in preview
        assert InvestmentReturn.query.count() == 2

        result = ReconciliationService.rollback_return(investment.id, '2025-10-02', apply=True)

        assert result['investment']['days_elapsed'] == 1
        assert result['investment']['status'] == 'active'
        assert result['investment']['last_return_applied'] == '2025-10-01T00:00:00Z'
        assert InvestmentReturn.query.count() == 1

    def test_rollback_day_without_returns(self, make_investment):
        investment = make_investment()
        assert ReconciliationService.rollback_return(investment.id, '2025-10-03', apply=True) is None
