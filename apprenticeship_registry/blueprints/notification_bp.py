"""
Notification Blueprint — outbox inspection and delivery worker control.

Endpoints (prefix /api/v1):
    GET    /outbound-messages                      — list (filters: status, category, user_id, apprenticeship_id)
    GET    /outbound-messages/stats                — counts per status + backlog
    POST   /outbound-messages/<id>/deliver         — deliver one message now (502 on channel failure)
    GET    /scheduler/jobs                         — registered jobs and run history
    POST   /scheduler/jobs/<job_name>/trigger      — run a job synchronously
"""

import logging

from flask import Blueprint, jsonify, request

from apprenticeship_registry.auth import require_role
from apprenticeship_registry.blueprints import pagination_args, service_context
from apprenticeship_registry.models.notification import MESSAGE_STATUSES
from apprenticeship_registry.services.notification import NotificationService
from apprenticeship_registry.services.scheduler_service import SchedulerService, get_registered_jobs
from apprenticeship_registry.utils.errors import E, api_error

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification", __name__, url_prefix="/api/v1")


@notification_bp.route("/outbound-messages", methods=["GET"])
@require_role("editor")
def list_outbound_messages():
    status = request.args.get("status") or None
    if status and status not in MESSAGE_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"Unknown status '{status}'",
                         details={"valid_statuses": sorted(MESSAGE_STATUSES)})
    limit, offset = pagination_args(default_limit=50)
    items, total = NotificationService.list_messages(
        service_context(),
        status=status,
        category=request.args.get("category") or None,
        user_id=request.args.get("user_id") or None,
        apprenticeship_id=request.args.get("apprenticeship_id") or None,
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": items, "total": total}), 200


@notification_bp.route("/outbound-messages/stats", methods=["GET"])
@require_role("editor")
def outbound_message_stats():
    return jsonify(NotificationService.stats(service_context())), 200


@notification_bp.route("/outbound-messages/<int:message_id>/deliver", methods=["POST"])
@require_role("admin")
def deliver_outbound_message(message_id):
    return jsonify(NotificationService.deliver(service_context(), message_id)), 200


@notification_bp.route("/scheduler/jobs", methods=["GET"])
@require_role("editor")
def list_jobs():
    jobs = SchedulerService.list_jobs()
    return jsonify({"items": jobs, "total": len(jobs)}), 200


@notification_bp.route("/scheduler/jobs/<job_name>/trigger", methods=["POST"])
@require_role("admin")
def trigger_job(job_name):
    if job_name not in get_registered_jobs():
        return api_error(E.NOT_FOUND, f"Unknown job: {job_name}")
    result = SchedulerService.run_job(job_name)
    status_code = 200 if result["status"] == "success" else 500
    return jsonify(result), status_code
