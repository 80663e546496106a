"""
Investment Plan Catalog for AxixFinance
Static plan definitions; investments reference plans by name and snapshot their rate
"""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class InvestmentPlan:
    """A fixed-term plan paying a daily percentage of principal"""
    id: str
    name: str
    min_amount: Decimal
    max_amount: Decimal  # None = unbounded
    daily_profit: Decimal  # 2 = 2% of principal per day
    duration_days: int

    @property
    def total_return(self):
        """Informational total return percentage including principal (106 = 106%)"""
        return Decimal('100') + self.daily_profit * self.duration_days

    def accepts_amount(self, amount):
        amount = Decimal(str(amount))
        if amount < self.min_amount:
            return False
        return self.max_amount is None or amount <= self.max_amount

    def to_dict(self):
        """Convert plan to dictionary"""
        return {
            'id': self.id,
            'name': self.name,
            'min_amount': float(self.min_amount),
            'max_amount': float(self.max_amount) if self.max_amount is not None else None,
            'daily_profit': float(self.daily_profit),
            'duration_days': self.duration_days,
            'total_return': float(self.total_return),
        }


# Changing these values never touches existing investments (they keep their own rate)
INVESTMENT_PLANS = (
    InvestmentPlan('starter', 'STARTER PLAN', Decimal('50'), Decimal('999'), Decimal('2'), 3),
    InvestmentPlan('premium', 'PREMIUM PLAN', Decimal('1000'), Decimal('4999'), Decimal('3.5'), 7),
    InvestmentPlan('delux', 'DELUX PLAN', Decimal('5000'), Decimal('19999'), Decimal('5'), 10),
    InvestmentPlan('luxury', 'LUXURY PLAN', Decimal('20000'), None, Decimal('7.5'), 30),
)

_PLANS_BY_NAME = {plan.name: plan for plan in INVESTMENT_PLANS}
_PLANS_BY_ID = {plan.id: plan for plan in INVESTMENT_PLANS}


def plan_by_name(name):
    """Look up a plan by its display name; None if unknown"""
    if not name:
        return None
    return _PLANS_BY_NAME.get(name)


class UnknownPlanError(LookupError):
    """An investment references a plan name missing from the catalog"""


def require_plan(name):
    plan = plan_by_name(name)
    if plan is None:
        raise UnknownPlanError(f"Unknown investment plan '{name}'")
    return plan


def plan_by_id(plan_id):
    return _PLANS_BY_ID.get(plan_id)


def plan_for_amount(amount):
    """Pick the tier whose range contains the amount"""
    for plan in INVESTMENT_PLANS:
        if plan.accepts_amount(amount):
            return plan
    return None
