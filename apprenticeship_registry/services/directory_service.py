"""
Directory service — users, curators and curator groups.

These are the reference entities apprenticeships point at. Only the
operations the registry needs are exposed: create, list, get.
"""

import logging

from apprenticeship_registry.core.exceptions import ConflictError, NotFoundError, ValidationError
from apprenticeship_registry.models.auth import USER_ROLES, Curator, CuratorGroup, User

logger = logging.getLogger(__name__)


# ── Users ─────────────────────────────────────────────────────────────────────

def create_user(ctx, data: dict) -> dict:
    telegram_id = str(data.get("telegram_id") or "").strip()
    if not telegram_id:
        raise ValidationError("telegram_id is required", details={"telegram_id": "required"})

    role = (data.get("role") or "STUDENT").upper()
    if role not in USER_ROLES:
        raise ValidationError(f"Invalid role '{role}'", details={"role": sorted(USER_ROLES)})

    if ctx.store.find_first(User, {"telegram_id": telegram_id}) is not None:
        raise ConflictError("User", f"telegram_id {telegram_id!r} already registered")

    user = ctx.store.create(User, {
        "telegram_id": telegram_id,
        "full_name": (data.get("full_name") or "").strip(),
        "role": role,
    })
    ctx.store.commit()
    logger.info("User created id=%s role=%s", user.id, role)
    return user.to_dict()


def list_users(ctx, role: str | None = None, limit: int | None = None, offset: int = 0):
    filters = {"role": role.upper()} if role else None
    total = ctx.store.count(User, filters)
    items = ctx.store.find_many(User, filters, order_by=User.created_at.asc(), limit=limit, offset=offset)
    return [u.to_dict() for u in items], total


def get_user(ctx, user_id: str) -> dict:
    user = ctx.store.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user.to_dict()


# ── Curators ──────────────────────────────────────────────────────────────────

def create_curator(ctx, data: dict) -> dict:
    full_name = (data.get("full_name") or "").strip()
    if not full_name:
        raise ValidationError("full_name is required", details={"full_name": "required"})
    curator = ctx.store.create(Curator, {"full_name": full_name, "email": data.get("email")})
    ctx.store.commit()
    return curator.to_dict()


def list_curators(ctx) -> list[dict]:
    return [c.to_dict() for c in ctx.store.find_many(Curator, order_by=Curator.full_name)]


# ── Curator groups ────────────────────────────────────────────────────────────

def create_curator_group(ctx, data: dict) -> dict:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if ctx.store.find_first(CuratorGroup, {"name": name}) is not None:
        raise ConflictError("CuratorGroup", f"name {name!r} already exists")
    group = ctx.store.create(CuratorGroup, {"name": name})
    ctx.store.commit()
    return group.to_dict()


def list_curator_groups(ctx) -> list[dict]:
    return [g.to_dict() for g in ctx.store.find_many(CuratorGroup, order_by=CuratorGroup.name)]
