"""
Apprenticeship Registry
Job runner for background work (currently: outbox delivery).

Jobs are plain ``fn(app) -> dict`` callables registered with
``@register_job``. A run happens inside a fresh app context, so it gets
its own database session, and its outcome is written to the job's
ScheduledJob row.

Ways to run a job:
    POST /api/v1/scheduler/jobs/<name>/trigger     one run, synchronous
    flask deliver-notifications                    one run
    flask deliver-notifications --loop             run_forever()
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from flask import Flask

from apprenticeship_registry.models import db
from apprenticeship_registry.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Registry
# ═══════════════════════════════════════════════════════════════════════════

class JobSpec:
    """A registered job and its default cadence."""

    def __init__(self, name: str, fn: Callable, every_seconds: int) -> None:
        self.name = name
        self.fn = fn
        self.every_seconds = every_seconds

    @property
    def description(self) -> str:
        return (self.fn.__doc__ or f"Job {self.name}").strip().splitlines()[0]


_jobs: dict[str, JobSpec] = {}


def register_job(name: str, every_seconds: int = 60):
    """Register ``fn(app)`` under ``name``.

    Usage:
        @register_job("notification_delivery", every_seconds=30)
        def deliver_outbox(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _jobs[name] = JobSpec(name, fn, every_seconds)
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return ``{name: fn}`` for every registered job."""
    return {name: job.fn for name, job in _jobs.items()}


# ═══════════════════════════════════════════════════════════════════════════
#  Runner
# ═══════════════════════════════════════════════════════════════════════════

class SchedulerService:
    """Class-level runner bound to one Flask app via ``init_app``."""

    _app: Flask | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("Scheduler bound to app, jobs: %s", ", ".join(sorted(_jobs)) or "none")

    @classmethod
    def _job_row(cls, job: JobSpec) -> ScheduledJob:
        row = ScheduledJob.query.filter_by(job_name=job.name).first()
        if row is None:
            row = ScheduledJob(
                job_name=job.name,
                description=job.description,
                interval_seconds=job.every_seconds,
            )
            db.session.add(row)
        return row

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """Run one job now and record the outcome.

        Returns:
            {"job_name", "status": "success"|"failed"|"error", "duration_ms",
             "result", "error"}
        """
        job = _jobs.get(job_name)
        if job is None:
            return {"job_name": job_name, "status": "error", "error": f"Unknown job: {job_name}"}
        if cls._app is None:
            return {"job_name": job_name, "status": "error", "error": "Scheduler not initialized"}

        outcome = {"job_name": job_name, "status": "success", "result": None, "error": None}
        started = time.monotonic()
        with cls._app.app_context():
            try:
                outcome["result"] = job.fn(cls._app)
            except Exception as exc:
                db.session.rollback()
                outcome["status"] = "failed"
                outcome["error"] = str(exc)
                logger.exception("Job %s failed", job_name)
            outcome["duration_ms"] = int((time.monotonic() - started) * 1000)

            result = outcome["result"]
            cls._job_row(job).record_run(
                status=outcome["status"],
                duration_ms=outcome["duration_ms"],
                result=result if isinstance(result, dict) else {"output": str(result)},
                error=outcome["error"],
            )
            db.session.commit()

        logger.info("Job %s finished: %s in %dms", job_name, outcome["status"], outcome["duration_ms"])
        return outcome

    @classmethod
    def run_forever(cls, job_name: str, interval_seconds: float, max_runs: int | None = None) -> int:
        """Run ``job_name`` every ``interval_seconds``.

        Stops on Ctrl-C or after ``max_runs``. Returns the number of runs.
        """
        runs = 0
        logger.info("Worker loop for %s every %ss", job_name, interval_seconds)
        try:
            while True:
                cls.run_job(job_name)
                runs += 1
                if max_runs is not None and runs >= max_runs:
                    break
                time.sleep(interval_seconds)
        except KeyboardInterrupt:
            logger.info("Worker loop interrupted")
        return runs

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """Registered jobs with their stored run history (None if never run)."""
        rows = {row.job_name: row for row in ScheduledJob.query.all()}
        return [
            {
                "job_name": name,
                "description": job.description,
                "every_seconds": job.every_seconds,
                "db_record": rows[name].to_dict() if name in rows else None,
            }
            for name, job in _jobs.items()
        ]
