"""
Apprenticeship CRUD service layer.

Centralises all reads and writes of Apprenticeship records so that
blueprints remain HTTP-only. Every ``ctx.store.commit()`` in this module
is a transaction boundary.

Workflow flags are not writable here; they only move through
status_transition_service.
"""

from __future__ import annotations

import logging

from apprenticeship_registry.core.exceptions import NotFoundError, ValidationError
from apprenticeship_registry.models.apprenticeship import (
    UPDATABLE_FIELDS,
    Apprenticeship,
    ApprenticeshipType,
)
from apprenticeship_registry.models.auth import Curator, CuratorGroup, User
from apprenticeship_registry.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

RELATIONS = ("user", "curator", "curator_group", "apprenticeship_type")
TEXT_FIELDS = tuple(f for f in UPDATABLE_FIELDS if f not in ("start_date", "end_date"))


# ── Private helpers ────────────────────────────────────────────────────────────


def _resolve_dates(data: dict, current_start=None, current_end=None) -> tuple:
    """Accept either start_date/end_date or a {"from", "to"} ``date`` range.

    A date missing from ``data`` falls back to ``current_start`` /
    ``current_end``; the ordering check runs on the merged pair.
    """
    rng = data.get("date")
    if isinstance(rng, dict):
        start_raw, end_raw = rng.get("from"), rng.get("to")
        start = parse_date_input(start_raw, "start_date")
        end = parse_date_input(end_raw, "end_date")
    else:
        start = (parse_date_input(data["start_date"], "start_date")
                 if "start_date" in data else current_start)
        end = (parse_date_input(data["end_date"], "end_date")
               if "end_date" in data else current_end)
    if start and end and end < start:
        raise ValidationError("end_date must not precede start_date",
                              details={"end_date": "before start_date"})
    return start, end


def _text_fields(data: dict) -> dict:
    """Pick the free-form text fields present in ``data``; each must be a string or null."""
    picked = {}
    for field in TEXT_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{field} must be a string",
                                  details={field: type(value).__name__})
        picked[field] = value
    return picked


def _require_user(store, data: dict) -> User:
    """Resolve the owning user by internal id, falling back to telegram_id."""
    user_id = data.get("user_id")
    telegram_id = data.get("telegram_id")
    if user_id:
        user = store.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user
    if telegram_id:
        user = store.find_first(User, {"telegram_id": str(telegram_id)})
        if user is None:
            raise NotFoundError("User", telegram_id)
        return user
    raise ValidationError("user_id or telegram_id is required", details={"user_id": "required"})


def _require_type(store, type_id) -> ApprenticeshipType:
    if not type_id:
        raise ValidationError("apprenticeship_type_id is required",
                              details={"apprenticeship_type_id": "required"})
    apprt_type = store.get(ApprenticeshipType, type_id)
    if apprt_type is None:
        raise NotFoundError("ApprenticeshipType", type_id)
    return apprt_type


def _require(store, apprenticeship_id) -> Apprenticeship:
    apprenticeship = store.get(Apprenticeship, apprenticeship_id)
    if apprenticeship is None:
        raise NotFoundError("Apprenticeship", apprenticeship_id)
    return apprenticeship


# ── Reads ──────────────────────────────────────────────────────────────────────


def list_all(ctx, limit: int | None = None, offset: int = 0) -> tuple[list[dict], int]:
    """Return paginated apprenticeships, newest first, without relations."""
    total = ctx.store.count(Apprenticeship)
    items = ctx.store.find_many(
        Apprenticeship, order_by=Apprenticeship.created_at.desc(), limit=limit, offset=offset,
    )
    return [a.to_dict() for a in items], total


def list_with_relations(ctx, limit: int | None = None, offset: int = 0) -> tuple[list[dict], int]:
    """Staff view: apprenticeships joined with user, curator, group and type."""
    total = ctx.store.count(Apprenticeship)
    items = ctx.store.find_many(
        Apprenticeship, include=RELATIONS,
        order_by=Apprenticeship.created_at.desc(), limit=limit, offset=offset,
    )
    return [a.to_dict(include_relations=True) for a in items], total


def get_for_user(ctx, user_id: str) -> dict | None:
    """Return the first apprenticeship belonging to ``user_id``, or None."""
    apprenticeship = ctx.store.find_first(
        Apprenticeship, {"user_id": user_id}, order_by=Apprenticeship.created_at.asc(),
    )
    return apprenticeship.to_dict() if apprenticeship else None


def get(ctx, apprenticeship_id: str) -> dict:
    return _require(ctx.store, apprenticeship_id).to_dict(include_relations=True)


# ── Writes ─────────────────────────────────────────────────────────────────────


def create(ctx, data: dict) -> dict:
    """Create an apprenticeship connected to an existing user and type.

    Workflow flags always start False.

    Returns:
        {"success": True, "result": <apprenticeship dict>}
    """
    store = ctx.store
    user = _require_user(store, data)
    apprt_type = _require_type(store, data.get("apprenticeship_type_id"))
    start, end = _resolve_dates(data)

    apprenticeship = store.create(Apprenticeship, {
        "user_id": user.id,
        "apprenticeship_type_id": apprt_type.id,
        "start_date": start,
        "end_date": end,
        **_text_fields(data),
    })
    store.commit()
    logger.info("Apprenticeship created id=%s user=%s", apprenticeship.id, user.id,
                extra=ctx.log_extra(apprenticeship_id=apprenticeship.id))
    return {"success": True, "result": apprenticeship.to_dict()}


def update(ctx, apprenticeship_id: str, data: dict) -> dict:
    """Update the fields present in ``data``.

    User and type are re-resolved and must exist. A single date in ``data``
    is checked against the stored other one. Curator and curator group
    ids that do not resolve are skipped: the connection is left as it was
    and a warning is logged.
    """
    store = ctx.store
    apprenticeship = _require(store, apprenticeship_id)
    user = _require_user(store, {"user_id": data.get("user_id") or apprenticeship.user_id})
    apprt_type = _require_type(
        store, data.get("apprenticeship_type_id") or apprenticeship.apprenticeship_type_id,
    )

    changes = {
        "user_id": user.id,
        "apprenticeship_type_id": apprt_type.id,
    }
    if "date" in data or "start_date" in data or "end_date" in data:
        changes["start_date"], changes["end_date"] = _resolve_dates(
            data, apprenticeship.start_date, apprenticeship.end_date,
        )
    changes.update(_text_fields(data))

    curator_id = data.get("curator_id")
    if curator_id:
        if store.get(Curator, curator_id) is not None:
            changes["curator_id"] = curator_id
        else:
            logger.warning("Curator %s not found, connection skipped for apprenticeship %s",
                           curator_id, apprenticeship_id)

    group_id = data.get("curator_group_id")
    if group_id:
        if store.get(CuratorGroup, group_id) is not None:
            changes["curator_group_id"] = group_id
        else:
            logger.warning("CuratorGroup %s not found, connection skipped for apprenticeship %s",
                           group_id, apprenticeship_id)

    store.update(apprenticeship, changes)
    store.commit()
    logger.info("Apprenticeship updated id=%s", apprenticeship_id,
                extra=ctx.log_extra(apprenticeship_id=apprenticeship_id))
    return {"success": True, "result": apprenticeship.to_dict()}


def delete(ctx, apprenticeship_id: str) -> dict:
    """Delete an apprenticeship. Outbox rows keep their history."""
    store = ctx.store
    apprenticeship = _require(store, apprenticeship_id)
    snapshot = apprenticeship.to_dict()
    store.delete(apprenticeship)
    store.commit()
    logger.info("Apprenticeship deleted id=%s", apprenticeship_id,
                extra=ctx.log_extra(apprenticeship_id=apprenticeship_id))
    return snapshot
