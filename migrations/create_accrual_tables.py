"""
Database Migration: Create Accrual Tables
Creates investments, investment_returns and job_runs, and makes sure the
idx_investment_returns_unique_per_day index exists.
"""

import os
import sys

# Add the parent directory to the path so we can import from the app
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import inspect

UNIQUE_INDEX_NAME = 'idx_investment_returns_unique_per_day'


def find_exact_duplicates():
    """(investment_id, return_date, count) groups that would violate the unique index"""
    from models import db, InvestmentReturn

    return db.session.query(
        InvestmentReturn.investment_id,
        InvestmentReturn.return_date,
        db.func.count(InvestmentReturn.id)
    ).group_by(
        InvestmentReturn.investment_id, InvestmentReturn.return_date
    ).having(db.func.count(InvestmentReturn.id) > 1).all()


def has_unique_index():
    from models import db

    indexes = inspect(db.engine).get_indexes('investment_returns')
    return any(index['name'] == UNIQUE_INDEX_NAME for index in indexes)


def create_accrual_tables():
    """Create accrual tables and the unique per-day index; returns True on success"""

    print("Creating accrual tables...")

    from models import db, InvestmentReturn

    db.create_all()
    print("   - investments")
    print("   - investment_returns")
    print("   - job_runs")

    if has_unique_index():
        print(f"   - {UNIQUE_INDEX_NAME} already present")
        return True

    duplicates = find_exact_duplicates()
    if duplicates:
        print(f"Cannot create {UNIQUE_INDEX_NAME}: {len(duplicates)} duplicate group(s) exist")
        for investment_id, return_date, count in duplicates[:20]:
            print(f"   - investment {investment_id} on {return_date} x{count}")
        print("Run scripts/cleanup_duplicates.py --apply first.")
        return False

    index = next(
        index for index in InvestmentReturn.__table__.indexes if index.name == UNIQUE_INDEX_NAME
    )
    index.create(db.engine, checkfirst=True)
    print(f"   - {UNIQUE_INDEX_NAME} created")
    return True


def run_migration(app=None):
    """Run the accrual tables migration"""

    if app is None:
        from dotenv import load_dotenv
        from app import create_app
        load_dotenv()
        app = create_app()

    with app.app_context():
        success = create_accrual_tables()

    if success:
        print("\nAccrual tables migration completed successfully!")
    else:
        print("\nMigration failed. Please check the errors above.")
    return success


if __name__ == "__main__":
    sys.exit(0 if run_migration() else 1)
