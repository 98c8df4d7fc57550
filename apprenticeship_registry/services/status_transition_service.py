"""
Apprenticeship status transitions.

Four one-way workflow flags live on every Apprenticeship:

    attendance       — placement confirmed
    signed           — agreement signed
    report_signed    — practice report signed
    referral_signed  — referral signed

Each flag moves False → True exactly once. A second confirmation is a
ConflictError, never a silent no-op. The flag write is a single conditional
UPDATE, so concurrent confirmations of the same flag produce one success
and one conflict.

Every successful transition enqueues one Telegram message for the student
in the same transaction. Delivery happens after commit and cannot undo
the transition (see services/notification.py).

Two entry points:
    confirm()           — the contract: no boolean, rejects only when already set
    apply_transition()  — legacy payload {id, user_id, <flag>: bool}, where the
                          caller sends the current (False) value; True is rejected
"""

from __future__ import annotations

import logging

from flask import current_app

from apprenticeship_registry.core.exceptions import ConflictError, NotFoundError, ValidationError
from apprenticeship_registry.models.apprenticeship import WORKFLOW_FLAGS, Apprenticeship
from apprenticeship_registry.models.auth import User
from apprenticeship_registry.services.notification import NotificationService, confirmation_text

logger = logging.getLogger(__name__)


def _check_flag(flag: str) -> None:
    if flag not in WORKFLOW_FLAGS:
        raise ValidationError(
            f"Unknown workflow flag '{flag}'",
            details={"flag": f"must be one of: {', '.join(WORKFLOW_FLAGS)}"},
        )


def _already_confirmed(flag: str, apprenticeship_id: str) -> ConflictError:
    return ConflictError("Apprenticeship", f"{flag} already confirmed", resource_id=apprenticeship_id)


def confirm(ctx, apprenticeship_id: str, flag: str, user_id: str | None = None, gateway=None) -> dict:
    """Set ``flag`` on an apprenticeship and notify the student.

    Args:
        ctx:               RequestContext with the record store.
        apprenticeship_id: Target record.
        flag:              One of WORKFLOW_FLAGS.
        user_id:           User to notify. Defaults to the apprenticeship's
                           own user; when given it must exist.
        gateway:           Notifier override for inline delivery.

    Returns:
        {"success": True, "result": <apprenticeship dict>}

    Raises:
        ValidationError: unknown flag.
        NotFoundError:   user or apprenticeship does not exist.
        ConflictError:   flag is already True.
        StoreFailedError: the write could not be committed.
    """
    _check_flag(flag)
    store = ctx.store

    user = None
    if user_id:
        user = store.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

    apprenticeship = store.get(Apprenticeship, apprenticeship_id)
    if apprenticeship is None:
        raise NotFoundError("Apprenticeship", apprenticeship_id)
    if user is None:
        user = apprenticeship.user

    if not store.compare_and_set(Apprenticeship, apprenticeship_id, flag, False, True):
        store.rollback()
        raise _already_confirmed(flag, apprenticeship_id)

    message = NotificationService.enqueue(
        ctx,
        channel_id=user.telegram_id,
        text=confirmation_text(flag),
        category=flag,
        user_id=user.id,
        apprenticeship_id=apprenticeship_id,
    )
    store.commit()

    logger.info(
        "Apprenticeship %s: %s confirmed", apprenticeship_id, flag,
        extra=ctx.log_extra(apprenticeship_id=apprenticeship_id, flag=flag, message_id=message.id),
    )

    if current_app.config.get("NOTIFY_DELIVER_INLINE", False):
        NotificationService.try_deliver_now(ctx, message.id, gateway=gateway)

    store.refresh(apprenticeship)
    return {"success": True, "result": apprenticeship.to_dict()}


def apply_transition(ctx, apprenticeship_id: str, user_id: str, flag: str,
                     requested_value: bool, gateway=None) -> dict:
    """Legacy transition: the caller asserts the flag's current value.

    ``requested_value`` True means the caller believes the flag is already
    set, which is rejected as a conflict before anything is looked up.
    """
    _check_flag(flag)
    if requested_value:
        raise _already_confirmed(flag, apprenticeship_id)
    if not user_id:
        raise ValidationError("user_id is required", details={"user_id": "required"})
    return confirm(ctx, apprenticeship_id, flag, user_id=user_id, gateway=gateway)


def confirm_attendance(ctx, apprenticeship_id: str, user_id: str | None = None, gateway=None) -> dict:
    """Mark attendance confirmed and notify the student."""
    return confirm(ctx, apprenticeship_id, "attendance", user_id=user_id, gateway=gateway)


def confirm_signed(ctx, apprenticeship_id: str, user_id: str | None = None, gateway=None) -> dict:
    """Mark the agreement signed and notify the student."""
    return confirm(ctx, apprenticeship_id, "signed", user_id=user_id, gateway=gateway)


def confirm_report_signed(ctx, apprenticeship_id: str, user_id: str | None = None, gateway=None) -> dict:
    """Mark the report signed and notify the student."""
    return confirm(ctx, apprenticeship_id, "report_signed", user_id=user_id, gateway=gateway)


def confirm_referral_signed(ctx, apprenticeship_id: str, user_id: str | None = None, gateway=None) -> dict:
    """Mark the referral signed and notify the student."""
    return confirm(ctx, apprenticeship_id, "referral_signed", user_id=user_id, gateway=gateway)
