"""
Apprenticeship Registry
Flask application factory.

    from apprenticeship_registry import create_app
    app = create_app()            # APP_ENV or "development"
    app = create_app("testing")

Module-level extension objects (``migrate``, ``limiter``) are bound to the
app inside create_app so blueprints and middleware can import them.
"""

import importlib
import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as sa_engine
from sqlalchemy import event as sa_event

from apprenticeship_registry.auth import init_auth
from apprenticeship_registry.config import config
from apprenticeship_registry.core.exceptions import (
    ConflictError,
    DeliveryFailedError,
    NotFoundError,
    StoreFailedError,
    ValidationError,
)
from apprenticeship_registry.middleware.logging_config import configure_logging
from apprenticeship_registry.middleware.rate_limiter import init_rate_limits
from apprenticeship_registry.middleware.security_headers import init_security_headers
from apprenticeship_registry.middleware.timing import init_request_timing
from apprenticeship_registry.models import db
from apprenticeship_registry.utils.errors import E, api_error

logger = logging.getLogger(__name__)

migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)

MODEL_MODULES = (
    "apprenticeship_registry.models.auth",
    "apprenticeship_registry.models.apprenticeship",
    "apprenticeship_registry.models.notification",
    "apprenticeship_registry.models.scheduling",
)


# SQLite ignores FK actions (SET NULL / RESTRICT) unless asked per connection
@sa_event.listens_for(sa_engine.Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# ── Setup steps ─────────────────────────────────────────────────────────────


def _init_extensions(app):
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    origins = app.config.get("CORS_ORIGINS") or ""
    if origins == "*":
        CORS(app)
    elif origins:
        CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()])


def _create_schema(app):
    for module in MODEL_MODULES:
        importlib.import_module(module)

    uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if uri.startswith("sqlite:///") and ":memory:" not in uri:
        os.makedirs(app.instance_path, exist_ok=True)

    with app.app_context():
        db.create_all()
    logger.debug("Schema ready on %s", uri.split("@")[-1])


def _register_blueprints(app):
    from apprenticeship_registry.blueprints.apprenticeship_bp import apprenticeship_bp
    from apprenticeship_registry.blueprints.directory_bp import directory_bp
    from apprenticeship_registry.blueprints.health_bp import health_bp
    from apprenticeship_registry.blueprints.notification_bp import notification_bp

    for bp in (apprenticeship_bp, directory_bp, notification_bp, health_bp):
        app.register_blueprint(bp)


def _register_error_handlers(app):
    """Render service exceptions and HTTP errors as the standard error body."""

    @app.errorhandler(ValidationError)
    def _on_validation(exc):
        return api_error(E.VALIDATION_INVALID, str(exc), details=exc.details)

    @app.errorhandler(NotFoundError)
    def _on_not_found(exc):
        return api_error(E.NOT_FOUND, str(exc))

    @app.errorhandler(ConflictError)
    def _on_conflict(exc):
        return api_error(E.CONFLICT_STATE, str(exc))

    @app.errorhandler(DeliveryFailedError)
    def _on_delivery_failed(exc):
        details = {"channel_id": exc.channel_id}
        if exc.status_code is not None:
            details["upstream_status"] = exc.status_code
        return api_error(E.DELIVERY_FAILED, str(exc), details=details)

    @app.errorhandler(StoreFailedError)
    def _on_store_failed(exc):
        logger.error("Record store %s failed: %s", exc.operation, exc.reason)
        return api_error(E.DATABASE, str(exc))

    @app.errorhandler(404)
    def _on_404(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def _on_405(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def _on_413(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(429)
    def _on_429(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def _on_500(e):
        logger.error("Unhandled error on %s %s", request.method, request.path,
                     exc_info=getattr(e, "original_exception", None) or e)
        return {"error": "Internal server error", "code": E.INTERNAL}, 500


def _register_cli(app):

    @app.cli.command("deliver-notifications")
    @click.option("--loop", is_flag=True, help="Keep running until interrupted.")
    @click.option("--interval", default=30.0, show_default=True, help="Seconds between runs with --loop.")
    @click.option("--max-runs", type=int, default=None, help="Stop --loop after N runs.")
    def deliver_notifications(loop, interval, max_runs):
        """Send queued and retry-due student notifications."""
        from apprenticeship_registry.services.scheduler_service import SchedulerService

        if loop:
            runs = SchedulerService.run_forever("notification_delivery", interval, max_runs=max_runs)
            click.echo(f"Worker stopped after {runs} run(s).")
            return
        outcome = SchedulerService.run_job("notification_delivery")
        click.echo(f"{outcome['status']}: {outcome['result'] or outcome['error']}")


# ── Factory ─────────────────────────────────────────────────────────────────


def create_app(config_name=None):
    """Build the app for ``config_name`` ("development", "testing", "production")."""
    config_name = config_name or os.getenv("APP_ENV", "development")
    settings = config[config_name]
    if config_name == "production":
        settings = settings()  # validates required env vars

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(settings)
    app.config.setdefault("MAX_CONTENT_LENGTH", 1024 * 1024)

    # Logging before anything else logs
    configure_logging(app)

    _init_extensions(app)
    init_auth(app)
    init_security_headers(app)
    init_request_timing(app)

    _create_schema(app)
    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cli(app)

    # Limits attach to registered blueprints
    init_rate_limits(app, limiter)

    # Importing the jobs module registers its @register_job functions
    importlib.import_module("apprenticeship_registry.services.scheduled_jobs")
    from apprenticeship_registry.services.scheduler_service import SchedulerService
    SchedulerService.init_app(app)

    logger.info("Apprenticeship registry ready (%s)", config_name)
    return app
