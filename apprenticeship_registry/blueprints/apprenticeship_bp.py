"""
Apprenticeship Blueprint.

Endpoints (prefix /api/v1):
  Records:
    GET    /apprenticeships                        — list (paginated)
    GET    /apprenticeships/with-relations         — staff view with user/curator/group/type
    GET    /apprenticeships/<id>                   — single record
    GET    /users/<user_id>/apprenticeship         — the user's apprenticeship or null
    POST   /apprenticeships                        — create (editor)
    PUT    /apprenticeships/<id>                   — update (editor)
    DELETE /apprenticeships/<id>                   — delete (admin)

  Status transitions:
    POST   /apprenticeships/<id>/<flag>/confirm    — body {"user_id"?}
    POST   /apprenticeships/attendance             — legacy body {id, user_id, attendance}
    POST   /apprenticeships/signed                 — legacy body {id, user_id, signed}
    POST   /apprenticeships/report-signed          — legacy body {id, user_id, report_signed}
    POST   /apprenticeships/referral-signed        — legacy body {id, user_id, referral_signed}

  Types:
    GET/POST /apprenticeship-types
    DELETE   /apprenticeship-types/<id>            — admin

Layer contract:
    - Blueprint: parse + shape-check input, call service, return JSON.
    - Service exceptions are rendered by the app-level error handlers.
    - NO db.session calls here.
"""

import logging

from flask import Blueprint, jsonify, request

from apprenticeship_registry.auth import require_role
from apprenticeship_registry.blueprints import pagination_args, service_context
from apprenticeship_registry.models.apprenticeship import WORKFLOW_FLAGS
from apprenticeship_registry.services import (
    apprenticeship_service,
    apprenticeship_type_service,
    status_transition_service,
)
from apprenticeship_registry.utils.errors import E, api_error

logger = logging.getLogger(__name__)

apprenticeship_bp = Blueprint("apprenticeship", __name__, url_prefix="/api/v1")

# Legacy URL segment → workflow flag
_LEGACY_ROUTES = {
    "attendance": "attendance",
    "signed": "signed",
    "report-signed": "report_signed",
    "referral-signed": "referral_signed",
}


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ── Records ────────────────────────────────────────────────────────────────────


@apprenticeship_bp.route("/apprenticeships", methods=["GET"])
def list_apprenticeships():
    limit, offset = pagination_args()
    items, total = apprenticeship_service.list_all(service_context(), limit=limit, offset=offset)
    return jsonify({"items": items, "total": total}), 200


@apprenticeship_bp.route("/apprenticeships/with-relations", methods=["GET"])
@require_role("editor")
def list_apprenticeships_with_relations():
    """Staff table: every apprenticeship with its user, curator, group and type."""
    limit, offset = pagination_args()
    items, total = apprenticeship_service.list_with_relations(service_context(), limit=limit, offset=offset)
    return jsonify({"items": items, "total": total}), 200


@apprenticeship_bp.route("/apprenticeships/<apprenticeship_id>", methods=["GET"])
def get_apprenticeship(apprenticeship_id):
    return jsonify(apprenticeship_service.get(service_context(), apprenticeship_id)), 200


@apprenticeship_bp.route("/users/<user_id>/apprenticeship", methods=["GET"])
def get_user_apprenticeship(user_id):
    """Return the user's apprenticeship, or null when they have none."""
    return jsonify(apprenticeship_service.get_for_user(service_context(), user_id)), 200


@apprenticeship_bp.route("/apprenticeships", methods=["POST"])
@require_role("editor")
def create_apprenticeship():
    data = _json_body()
    if not data.get("apprenticeship_type_id"):
        return api_error(E.VALIDATION_REQUIRED, "apprenticeship_type_id is required")
    if not (data.get("user_id") or data.get("telegram_id")):
        return api_error(E.VALIDATION_REQUIRED, "user_id or telegram_id is required")
    return jsonify(apprenticeship_service.create(service_context(), data)), 201


@apprenticeship_bp.route("/apprenticeships/<apprenticeship_id>", methods=["PUT"])
@require_role("editor")
def update_apprenticeship(apprenticeship_id):
    data = _json_body()
    flags_sent = sorted(set(WORKFLOW_FLAGS) & set(data))
    if flags_sent:
        logger.debug("Ignoring workflow flags in update payload: %s", flags_sent)
    return jsonify(apprenticeship_service.update(service_context(), apprenticeship_id, data)), 200


@apprenticeship_bp.route("/apprenticeships/<apprenticeship_id>", methods=["DELETE"])
@require_role("admin")
def delete_apprenticeship(apprenticeship_id):
    return jsonify(apprenticeship_service.delete(service_context(), apprenticeship_id)), 200


# ── Status transitions ─────────────────────────────────────────────────────────


@apprenticeship_bp.route("/apprenticeships/<apprenticeship_id>/<flag>/confirm", methods=["POST"])
@require_role("editor")
def confirm_flag(apprenticeship_id, flag):
    """Flip one workflow flag to True and notify the student.

    409 when the flag is already set, 404 for an unknown user or record.
    """
    if flag not in WORKFLOW_FLAGS:
        return api_error(E.VALIDATION_INVALID, f"Unknown workflow flag '{flag}'",
                         details={"valid_flags": list(WORKFLOW_FLAGS)})
    data = _json_body()
    result = status_transition_service.confirm(
        service_context(), apprenticeship_id, flag, user_id=data.get("user_id"),
    )
    return jsonify(result), 200


@apprenticeship_bp.route("/apprenticeships/<any(attendance, signed, 'report-signed', 'referral-signed'):route>",
                         methods=["POST"])
@require_role("editor")
def legacy_transition(route):
    """Legacy transition payload {id, user_id, <flag>: bool}."""
    flag = _LEGACY_ROUTES[route]
    data = _json_body()
    apprenticeship_id = data.get("id")
    if not apprenticeship_id:
        return api_error(E.VALIDATION_REQUIRED, "id is required")
    if not data.get("user_id"):
        return api_error(E.VALIDATION_REQUIRED, "user_id is required")
    requested = data.get(flag)
    if not isinstance(requested, bool):
        return api_error(E.VALIDATION_REQUIRED, f"{flag} must be a boolean")

    result = status_transition_service.apply_transition(
        service_context(), apprenticeship_id, data["user_id"], flag, requested,
    )
    return jsonify(result), 200


# ── Types ──────────────────────────────────────────────────────────────────────


@apprenticeship_bp.route("/apprenticeship-types", methods=["GET"])
def list_types():
    items = apprenticeship_type_service.list_types(service_context())
    return jsonify({"items": items, "total": len(items)}), 200


@apprenticeship_bp.route("/apprenticeship-types", methods=["POST"])
@require_role("editor")
def create_type():
    return jsonify(apprenticeship_type_service.create(service_context(), _json_body())), 201


@apprenticeship_bp.route("/apprenticeship-types/<type_id>", methods=["DELETE"])
@require_role("admin")
def delete_type(type_id):
    return jsonify(apprenticeship_type_service.delete(service_context(), type_id)), 200
