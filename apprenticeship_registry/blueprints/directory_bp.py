"""
Directory Blueprint — users, curators, curator groups.

Endpoints (prefix /api/v1):
    GET/POST  /users
    GET       /users/<user_id>
    GET/POST  /curators
    GET/POST  /curator-groups
"""

import logging

from flask import Blueprint, jsonify, request

from apprenticeship_registry.auth import require_role
from apprenticeship_registry.blueprints import pagination_args, service_context
from apprenticeship_registry.services import directory_service

logger = logging.getLogger(__name__)

directory_bp = Blueprint("directory", __name__, url_prefix="/api/v1")


@directory_bp.route("/users", methods=["GET"])
def list_users():
    limit, offset = pagination_args()
    items, total = directory_service.list_users(
        service_context(), role=request.args.get("role") or None, limit=limit, offset=offset,
    )
    return jsonify({"items": items, "total": total}), 200


@directory_bp.route("/users", methods=["POST"])
@require_role("editor")
def create_user():
    data = request.get_json(silent=True) or {}
    return jsonify(directory_service.create_user(service_context(), data)), 201


@directory_bp.route("/users/<user_id>", methods=["GET"])
def get_user(user_id):
    return jsonify(directory_service.get_user(service_context(), user_id)), 200


@directory_bp.route("/curators", methods=["GET"])
def list_curators():
    items = directory_service.list_curators(service_context())
    return jsonify({"items": items, "total": len(items)}), 200


@directory_bp.route("/curators", methods=["POST"])
@require_role("editor")
def create_curator():
    data = request.get_json(silent=True) or {}
    return jsonify(directory_service.create_curator(service_context(), data)), 201


@directory_bp.route("/curator-groups", methods=["GET"])
def list_curator_groups():
    items = directory_service.list_curator_groups(service_context())
    return jsonify({"items": items, "total": len(items)}), 200


@directory_bp.route("/curator-groups", methods=["POST"])
@require_role("editor")
def create_curator_group():
    data = request.get_json(silent=True) or {}
    return jsonify(directory_service.create_curator_group(service_context(), data)), 201
