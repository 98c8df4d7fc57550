"""
Apprenticeship Registry
Background job bookkeeping.

Models:
    - ScheduledJob: one row per registered job, holding its cadence and the
      outcome of its most recent run
"""

from datetime import datetime, timezone

from apprenticeship_registry.models import db


class ScheduledJob(db.Model):
    """Run history for a job from services/scheduler_service.py."""

    __tablename__ = "scheduled_jobs"

    id = db.Column(db.Integer, primary_key=True)
    job_name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.String(500), default="")
    interval_seconds = db.Column(db.Integer, default=60, comment="Cadence used by the worker loop")
    is_enabled = db.Column(db.Boolean, default=True)

    run_count = db.Column(db.Integer, default=0)
    failure_count = db.Column(db.Integer, default=0)
    last_run_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_run_status = db.Column(db.String(20), nullable=True)
    last_run_duration_ms = db.Column(db.Integer, nullable=True)
    last_run_result = db.Column(db.JSON, nullable=True, comment="Summary dict returned by the job")
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def record_run(self, *, status, duration_ms, result=None, error=None):
        """Store the outcome of one run. ``last_error`` survives later successes."""
        self.run_count = (self.run_count or 0) + 1
        self.last_run_at = datetime.now(timezone.utc)
        self.last_run_status = status
        self.last_run_duration_ms = duration_ms
        self.last_run_result = result
        if status == "failed":
            self.failure_count = (self.failure_count or 0) + 1
            self.last_error = error

    def to_dict(self):
        return {
            "id": self.id,
            "job_name": self.job_name,
            "description": self.description,
            "interval_seconds": self.interval_seconds,
            "is_enabled": self.is_enabled,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_run_status": self.last_run_status,
            "last_run_duration_ms": self.last_run_duration_ms,
            "last_run_result": self.last_run_result,
            "last_error": self.last_error,
        }

    def __repr__(self):
        return f"<ScheduledJob {self.job_name} runs={self.run_count}>"
