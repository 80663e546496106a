"""
AxixFinance Accrual Backend Models
Database models initialization
"""

from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy instance
db = SQLAlchemy()

# Import all models to ensure they are registered
from .investment import Investment, InvestmentReturn, InvestmentStatus, AccrualState
from .job_run import JobRun
from .plan import (
    InvestmentPlan, INVESTMENT_PLANS, UnknownPlanError,
    plan_by_name, plan_by_id, plan_for_amount, require_plan
)

# Export commonly used models
__all__ = [
    'db',
    'Investment',
    'InvestmentReturn',
    'InvestmentStatus',
    'AccrualState',
    'JobRun',
    'InvestmentPlan',
    'INVESTMENT_PLANS',
    'UnknownPlanError',
    'plan_by_name',
    'plan_by_id',
    'plan_for_amount',
    'require_plan'
]
