from decimal import Decimal

import pytest

from models import (
    INVESTMENT_PLANS, UnknownPlanError, plan_by_id, plan_by_name, plan_for_amount, require_plan
)


def test_four_tiers_in_catalog():
    assert [plan.id for plan in INVESTMENT_PLANS] == ['starter', 'premium', 'delux', 'luxury']


def test_plan_by_name():
    plan = plan_by_name('PREMIUM PLAN')
    assert plan.id == 'premium'
    assert plan.daily_profit == Decimal('3.5')
    assert plan.duration_days == 7


def test_plan_by_name_unknown_or_empty():
    assert plan_by_name('GOLD PLAN') is None
    assert plan_by_name('') is None
    assert plan_by_name(None) is None


def test_plan_by_id():
    assert plan_by_id('luxury').name == 'LUXURY PLAN'
    assert plan_by_id('missing') is None


def test_require_plan_raises_for_unknown_name():
    with pytest.raises(UnknownPlanError):
        require_plan('premium plan')


@pytest.mark.parametrize('plan_id, expected', [
    ('starter', Decimal('106')),
    ('premium', Decimal('124.5')),
    ('delux', Decimal('150')),
    ('luxury', Decimal('325')),
])
def test_total_return_is_informational_sum(plan_id, expected):
    assert plan_by_id(plan_id).total_return == expected


@pytest.mark.parametrize('amount, plan_id', [
    (50, 'starter'),
    (999, 'starter'),
    (1000, 'premium'),
    (4999.99, None),
    (19999, 'delux'),
    (20000, 'luxury'),
    (1000000, 'luxury'),
])
def test_plan_for_amount(amount, plan_id):
    plan = plan_for_amount(amount)
    assert (plan.id if plan else None) == plan_id


def test_plan_for_amount_below_minimum():
    assert plan_for_amount(49.99) is None


def test_to_dict_unbounded_max():
    data = plan_by_id('luxury').to_dict()
    assert data['max_amount'] is None
    assert data['daily_profit'] == 7.5
