"""
Investment Ledger Models for AxixFinance
Handles user investments and the append-only daily return log
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

from services.dates import utc_start_of_day, isoformat_utc

from . import db


CENT = Decimal('0.01')


class InvestmentStatus(Enum):
    """User investment status enumeration"""
    ACTIVE = 'active'
    COMPLETED = 'completed'


class AccrualState(Enum):
    """Per-day accrual state of an investment.

    Never persisted; derived from ``last_return_applied`` for a given day.
    """
    NOT_YET_ELIGIBLE = 'not-yet-eligible'
    ELIGIBLE_PENDING_CREDIT = 'eligible-pending-credit'
    CREDITED_TODAY = 'credited-today'
    COMPLETED = 'completed'


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def calculate_daily_amount(principal_amount, daily_profit):
    """principal * daily_profit / 100, rounded half-up to cents"""
    amount = Decimal(str(principal_amount)) * Decimal(str(daily_profit)) / Decimal('100')
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


class Investment(db.Model):
    """An investment earning a daily profit until its term ends"""

    __tablename__ = 'investments'

    # Primary fields
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), nullable=False, index=True)
    transaction_id = db.Column(db.Integer)  # approving deposit, owned upstream

    # Plan snapshot (plan_name is the lookup key into the catalog)
    plan_name = db.Column(db.String(100), nullable=False)
    plan_duration = db.Column(db.Integer, nullable=False)
    daily_profit = db.Column(db.Numeric(10, 4), nullable=False)  # 3.5 = 3.5% per day
    total_return = db.Column(db.Numeric(10, 2))  # informational only
    principal_amount = db.Column(db.Numeric(20, 2), nullable=False)

    # Important dates (naive UTC)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime)
    first_profit_date = db.Column(db.DateTime, nullable=False)  # UTC start-of-day
    last_return_applied = db.Column(db.DateTime)  # UTC start-of-day of latest credit

    # Accrual tracking
    days_elapsed = db.Column(db.Integer, default=0, nullable=False)
    total_earned = db.Column(db.Numeric(20, 2), default=0, nullable=False)
    status = db.Column(
        db.Enum(InvestmentStatus, values_callable=_enum_values, native_enum=False, length=20),
        default=InvestmentStatus.ACTIVE, nullable=False, index=True
    )

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    returns = db.relationship(
        'InvestmentReturn', backref='investment', lazy='dynamic',
        cascade='all, delete-orphan', order_by='InvestmentReturn.return_date'
    )

    # Indexes
    __table_args__ = (
        db.Index('idx_investments_status_last_return', 'status', 'last_return_applied'),
        db.CheckConstraint('days_elapsed >= 0', name='ck_investments_days_elapsed_non_negative'),
    )

    def __repr__(self):
        return f'<Investment {self.id}:{self.plan_name}:{self.principal_amount}>'

    @property
    def is_completed(self):
        return self.status == InvestmentStatus.COMPLETED

    @property
    def days_remaining(self):
        return max(0, self.plan_duration - self.days_elapsed)

    @property
    def daily_amount(self):
        """Credit applied per eligible day, from this investment's own rate"""
        return calculate_daily_amount(self.principal_amount, self.daily_profit)

    @staticmethod
    def eligible_filter(as_of_day):
        """SQL criterion selecting investments due a credit on ``as_of_day``"""
        as_of_day = utc_start_of_day(as_of_day)
        return db.and_(
            Investment.status == InvestmentStatus.ACTIVE,
            db.or_(
                Investment.last_return_applied.is_(None),
                Investment.last_return_applied < as_of_day
            ),
            Investment.first_profit_date <= as_of_day,
            Investment.days_elapsed < Investment.plan_duration
        )

    def is_eligible_on(self, as_of_day):
        """Python mirror of ``eligible_filter`` for an already loaded row"""
        as_of_day = utc_start_of_day(as_of_day)
        if self.status != InvestmentStatus.ACTIVE:
            return False
        if self.days_elapsed >= self.plan_duration:
            return False
        if self.first_profit_date > as_of_day:
            return False
        return (
            self.last_return_applied is None or
            self.last_return_applied < as_of_day
        )

    def accrual_state(self, as_of_day):
        """Derive the accrual state for ``as_of_day``"""
        as_of_day = utc_start_of_day(as_of_day)
        if self.status == InvestmentStatus.COMPLETED:
            return AccrualState.COMPLETED
        if self.last_return_applied is not None and \
                self.last_return_applied >= as_of_day:
            return AccrualState.CREDITED_TODAY
        if self.first_profit_date > as_of_day:
            return AccrualState.NOT_YET_ELIGIBLE
        return AccrualState.ELIGIBLE_PENDING_CREDIT

    def to_dict(self):
        """Convert investment to dictionary"""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'plan_name': self.plan_name,
            'plan_duration': self.plan_duration,
            'daily_profit': float(self.daily_profit),
            'principal_amount': float(self.principal_amount),
            'start_date': isoformat_utc(self.start_date),
            'end_date': isoformat_utc(self.end_date),
            'first_profit_date': isoformat_utc(self.first_profit_date),
            'last_return_applied': isoformat_utc(self.last_return_applied),
            'days_elapsed': self.days_elapsed,
            'days_remaining': self.days_remaining,
            'total_earned': float(self.total_earned),
            'status': self.status.value,
            'created_at': isoformat_utc(self.created_at)
        }


class InvestmentReturn(db.Model):
    """One day's credit for an investment; at most one per investment per UTC day"""

    __tablename__ = 'investment_returns'

    # Primary fields
    id = db.Column(db.Integer, primary_key=True)
    investment_id = db.Column(
        db.Integer, db.ForeignKey('investments.id', ondelete='CASCADE'), nullable=False
    )
    user_id = db.Column(db.String(36), nullable=False, index=True)

    # Return details
    amount = db.Column(db.Numeric(20, 2), nullable=False)
    return_date = db.Column(db.DateTime, nullable=False, index=True)  # UTC start-of-day
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)  # wall clock

    # Indexes
    __table_args__ = (
        db.Index(
            'idx_investment_returns_unique_per_day',
            'investment_id', 'return_date',
            unique=True
        ),
    )

    def __repr__(self):
        return f'<InvestmentReturn {self.investment_id}:{self.return_date}:{self.amount}>'

    def to_dict(self):
        """Convert return to dictionary"""
        return {
            'id': self.id,
            'investment_id': self.investment_id,
            'user_id': self.user_id,
            'amount': float(self.amount),
            'return_date': isoformat_utc(self.return_date),
            'created_at': isoformat_utc(self.created_at)
        }
