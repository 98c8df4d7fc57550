"""
Apprenticeship type taxonomy service.

A type may only be deleted while no apprenticeship references it; the
check runs before the delete so the caller gets a ConflictError instead
of a database constraint error.
"""

import logging

from apprenticeship_registry.core.exceptions import ConflictError, NotFoundError, ValidationError
from apprenticeship_registry.models.apprenticeship import Apprenticeship, ApprenticeshipType

logger = logging.getLogger(__name__)


def list_types(ctx) -> list[dict]:
    return [t.to_dict() for t in ctx.store.find_many(ApprenticeshipType, order_by=ApprenticeshipType.name)]


def create(ctx, data: dict) -> dict:
    """Create a type with a unique name.

    Returns:
        {"success": True, "result": <type dict>}

    Raises:
        ValidationError: name missing or longer than 200 chars.
        ConflictError: a type with that name already exists.
    """
    name = (data.get("name") or "").strip()
    if not name or len(name) > 200:
        raise ValidationError("name is required and must be <= 200 chars", details={"name": "invalid"})

    if ctx.store.find_first(ApprenticeshipType, {"name": name}) is not None:
        raise ConflictError("ApprenticeshipType", f"name {name!r} already exists")

    apprt_type = ctx.store.create(ApprenticeshipType, {
        "name": name,
        "description": data.get("description") or "",
    })
    ctx.store.commit()
    logger.info("ApprenticeshipType created id=%s name=%s", apprt_type.id, name)
    return {"success": True, "result": apprt_type.to_dict()}


def delete(ctx, type_id: str) -> dict:
    """Delete an unreferenced type.

    Raises:
        NotFoundError: no such type.
        ConflictError: at least one apprenticeship still references it.
    """
    apprt_type = ctx.store.get(ApprenticeshipType, type_id)
    if apprt_type is None:
        raise NotFoundError("ApprenticeshipType", type_id)

    in_use = ctx.store.count(Apprenticeship, {"apprenticeship_type_id": type_id})
    if in_use:
        raise ConflictError(
            "ApprenticeshipType", f"still referenced by {in_use} apprenticeship(s)", resource_id=type_id,
        )

    snapshot = apprt_type.to_dict()
    ctx.store.delete(apprt_type)
    ctx.store.commit()
    logger.info("ApprenticeshipType deleted id=%s", type_id)
    return {"success": True, "result": snapshot}
