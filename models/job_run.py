"""
Job Run Audit Model for AxixFinance
Append-only record of each scheduled/manual execution of a background job
"""

from datetime import datetime, timedelta

from services.dates import isoformat_utc

from . import db


class JobRun(db.Model):
    """One execution of a background job; finalized exactly once"""

    __tablename__ = 'job_runs'

    # Primary fields
    id = db.Column(db.Integer, primary_key=True)
    job_name = db.Column(db.String(100), nullable=False)
    source = db.Column(db.String(50), default='cron', nullable=False)  # cron, manual, api

    # Timing
    started_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    finished_at = db.Column(db.DateTime)
    as_of_day = db.Column(db.DateTime)

    # Outcome
    success = db.Column(db.Boolean)  # None while running
    dry_run = db.Column(db.Boolean, default=False, nullable=False)
    processed_count = db.Column(db.Integer, default=0, nullable=False)
    completed_count = db.Column(db.Integer, default=0, nullable=False)
    skipped_count = db.Column(db.Integer, default=0, nullable=False)
    failed_count = db.Column(db.Integer, default=0, nullable=False)
    total_applied = db.Column(db.Numeric(20, 2), default=0, nullable=False)
    error_text = db.Column(db.Text)

    # Indexes
    __table_args__ = (
        db.Index('idx_job_runs_name_started', 'job_name', 'started_at'),
    )

    def __repr__(self):
        return f'<JobRun {self.job_name}:{self.started_at}:{self.success}>'

    @property
    def is_finished(self):
        return self.finished_at is not None

    @property
    def duration_seconds(self):
        if not self.finished_at:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def finalize(self, success, processed_count=0, completed_count=0, total_applied=0,
                 skipped_count=0, failed_count=0, error_text=None):
        """Set the outcome; a finished run cannot be finalized again"""
        if self.is_finished:
            raise ValueError(f'Job run {self.id} already finalized at {self.finished_at}')

        self.finished_at = datetime.utcnow()
        self.success = success
        self.processed_count = processed_count
        self.completed_count = completed_count
        self.skipped_count = skipped_count
        self.failed_count = failed_count
        self.total_applied = total_applied
        self.error_text = error_text

    def to_dict(self):
        """Convert job run to dictionary"""
        return {
            'id': self.id,
            'job_name': self.job_name,
            'source': self.source,
            'started_at': isoformat_utc(self.started_at),
            'finished_at': isoformat_utc(self.finished_at),
            'as_of_day': isoformat_utc(self.as_of_day),
            'success': self.success,
            'dry_run': self.dry_run,
            'processed_count': self.processed_count,
            'completed_count': self.completed_count,
            'skipped_count': self.skipped_count,
            'failed_count': self.failed_count,
            'total_applied': float(self.total_applied or 0),
            'error_text': self.error_text,
            'duration_seconds': self.duration_seconds
        }

    @staticmethod
    def get_last_run(job_name):
        """Most recently started run of a job"""
        return JobRun.query.filter_by(job_name=job_name).order_by(
            JobRun.started_at.desc(), JobRun.id.desc()
        ).first()

    @staticmethod
    def get_last_successful_run(job_name):
        """Most recent successful run that actually wrote to the ledger (dry runs excluded)"""
        return JobRun.query.filter_by(job_name=job_name, success=True, dry_run=False).order_by(
            JobRun.started_at.desc(), JobRun.id.desc()
        ).first()

    @staticmethod
    def get_recent_runs(job_name, limit=10):
        return JobRun.query.filter_by(job_name=job_name).order_by(
            JobRun.started_at.desc(), JobRun.id.desc()
        ).limit(limit).all()

    @staticmethod
    def is_stale(job_name, threshold_hours, now=None):
        """True when no successful run started within the threshold (dry runs never count)"""
        now = now or datetime.utcnow()
        cutoff = now - timedelta(hours=threshold_hours)
        recent_success = JobRun.query.filter(
            JobRun.job_name == job_name,
            JobRun.success.is_(True),
            JobRun.dry_run.is_(False),
            JobRun.started_at >= cutoff
        ).first()
        return recent_success is None
