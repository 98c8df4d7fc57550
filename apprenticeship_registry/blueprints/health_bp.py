"""
Health checks (no auth, no rate limit).

    GET /api/v1/health/ready   process is up
    GET /api/v1/health/live    database round-trip, notifier mode, outbox backlog;
                               503 when the database is unreachable
"""

import logging
import time

from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from apprenticeship_registry.blueprints import service_context
from apprenticeship_registry.integrations.telegram_gateway import telegram_gateway
from apprenticeship_registry.models import db
from apprenticeship_registry.services.notification import NotificationService

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    started = time.perf_counter()
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Liveness: database unreachable: %s", exc)
        return jsonify({
            "status": "degraded",
            "checks": {"database": {"status": "error", "detail": str(exc)}},
        }), 503

    outbox = NotificationService.stats(service_context())
    checks = {
        "database": {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)},
        "telegram": {"status": "configured" if telegram_gateway.is_configured() else "dev_mode"},
        "outbox": {"status": "ok", "backlog": outbox["backlog"], "dead": outbox["by_status"]["dead"]},
    }
    return jsonify({"status": "ok", "checks": checks}), 200
