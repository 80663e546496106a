"""
Shared fixtures: an application on in-memory SQLite and investment factories
"""

from datetime import datetime
from decimal import Decimal

import pytest

from app import create_app
from config import TestingConfig
from models import db as _db, Investment, InvestmentReturn, InvestmentStatus


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_investment(db):
    """Create and commit an investment; defaults to the $1000 PREMIUM PLAN scenario"""
    def _make(**overrides):
        data = {
            'user_id': 'user-1',
            'plan_name': 'PREMIUM PLAN',
            'plan_duration': 7,
            'daily_profit': Decimal('3.5'),
            'principal_amount': Decimal('1000.00'),
            'total_return': Decimal('124.5'),
            'start_date': datetime(2025, 10, 1, 9, 30),
            'first_profit_date': datetime(2025, 10, 1),
            'last_return_applied': None,
            'days_elapsed': 0,
            'total_earned': Decimal('0'),
            'status': InvestmentStatus.ACTIVE,
        }
        data.update(overrides)
        investment = Investment(**data)
        db.session.add(investment)
        db.session.commit()
        return investment
    return _make


@pytest.fixture
def make_return(db):
    """Insert a raw return row, bypassing the ledger (to simulate legacy data)"""
    def _make(investment, return_date, amount=None, created_at=None):
        entry = InvestmentReturn(
            investment_id=investment.id,
            user_id=investment.user_id,
            amount=amount if amount is not None else investment.daily_amount,
            return_date=return_date,
            created_at=created_at or return_date
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    return _make
