"""
Job API Routes
Manual trigger and monitoring endpoints for the daily accrual job
"""

import math

from flask import Blueprint, current_app, request, jsonify

from auth.utils import cron_secret_required
from services.accrual_engine import run_daily_accrual
from services.dates import utc_start_of_day
from services.job_monitor import get_job_health, get_recent_runs

# Create blueprint
jobs_bp = Blueprint('jobs', __name__, url_prefix='/api/jobs')


def _parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).lower() in ['true', '1', 'yes', 'on']


@jobs_bp.route('/daily-investments/run', methods=['POST'])
@cron_secret_required
def run_daily_investments():
    """Run the daily accrual now, optionally for an explicit UTC day"""

    data = request.get_json(silent=True) or {}

    as_of = data.get('as_of')
    if as_of is not None:
        try:
            as_of = utc_start_of_day(as_of)
        except (TypeError, ValueError) as e:
            return jsonify({
                'success': False,
                'message': f'Invalid as_of: {str(e)}'
            }), 400

    job_run = run_daily_accrual(
        as_of=as_of,
        source=data.get('source') or 'manual',
        dry_run=_parse_bool(data.get('dry_run', False))
    )

    status_code = 200 if job_run.success else 500
    return jsonify({
        'success': bool(job_run.success),
        'job_run': job_run.to_dict()
    }), status_code


@jobs_bp.route('/daily-investments/status', methods=['GET'])
@cron_secret_required
def daily_investments_status():
    """Health of the daily accrual job (stale flag, last run, recent stats)"""

    try:
        hours = float(request.args.get('hours', current_app.config['JOB_STALE_HOURS']))
    except ValueError:
        hours = None

    if hours is None or not math.isfinite(hours) or hours <= 0:
        return jsonify({
            'success': False,
            'message': 'hours must be a positive number'
        }), 400

    health = get_job_health(current_app.config['DAILY_JOB_NAME'], hours)
    health['success'] = True
    return jsonify(health), 200


@jobs_bp.route('/daily-investments/runs', methods=['GET'])
@cron_secret_required
def daily_investments_runs():
    """Most recent runs of the daily accrual job"""

    limit = request.args.get('limit', current_app.config['DEFAULT_PAGE_SIZE'], type=int)
    limit = max(1, min(limit, current_app.config['MAX_PAGE_SIZE']))

    runs = get_recent_runs(current_app.config['DAILY_JOB_NAME'], limit)
    return jsonify({
        'success': True,
        'runs': [run.to_dict() for run in runs],
        'total': len(runs)
    }), 200
