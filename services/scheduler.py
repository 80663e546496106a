"""
Scheduler Service for AxixFinance Accrual Backend
Handles the daily accrual trigger and periodic job health checks
"""

from apscheduler.schedulers.background import BackgroundScheduler
from flask import current_app

from services.accrual_engine import run_daily_accrual
from services.job_monitor import get_job_health


def calculate_daily_investment_returns(app=None):
    """Run the daily accrual job for the current UTC day"""
    if app is None:
        app = current_app._get_current_object()

    with app.app_context():
        try:
            app.logger.info("Starting scheduled daily investment accrual")

            job_run = run_daily_accrual(source='cron')

            if job_run.success:
                app.logger.info(
                    f"Investment returns completed: {job_run.processed_count} investments, "
                    f"{job_run.completed_count} completed, ${job_run.total_applied} distributed"
                )
            else:
                app.logger.error(f"Investment returns failed: {job_run.error_text or 'Unknown error'}")

        except Exception as e:
            app.logger.error(f"Investment returns calculation error: {str(e)}")


def daily_job_health_check(app=None):
    """Warn when the daily accrual job has not succeeded recently"""
    if app is None:
        app = current_app._get_current_object()

    with app.app_context():
        try:
            job_name = app.config['DAILY_JOB_NAME']
            threshold = app.config['JOB_STALE_HOURS']
            health = get_job_health(job_name, threshold)

            if health['stale']:
                app.logger.warning(
                    f"Job {job_name} is stale: no successful run in {threshold}h "
                    f"(last success {health['hours_since_last_success']}h ago)"
                )
            else:
                app.logger.info(
                    f"Job {job_name} healthy: success rate {health['stats']['success_rate']} "
                    f"over {health['recent_count']} runs"
                )

        except Exception as e:
            app.logger.error(f"Job health check error: {str(e)}")


def init_scheduler(app):
    """Initialize and configure the scheduler"""
    scheduler = BackgroundScheduler(timezone=app.config.get('SCHEDULER_TIMEZONE', 'UTC'))

    # Daily investment returns shortly after midnight UTC
    scheduler.add_job(
        lambda: calculate_daily_investment_returns(app),
        'cron',
        hour=app.config['ACCRUAL_CRON_HOUR'],
        minute=app.config['ACCRUAL_CRON_MINUTE'],
        id='daily_investment_returns',
        max_instances=1,
        coalesce=True,
        misfire_grace_time=3600
    )

    # Job health check
    scheduler.add_job(
        lambda: daily_job_health_check(app),
        'interval',
        hours=app.config['HEALTH_CHECK_INTERVAL_HOURS'],
        id='daily_job_health_check'
    )

    scheduler.start()
    app.logger.info("Background scheduler initialized")

    return scheduler
