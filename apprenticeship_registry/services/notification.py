"""
Apprenticeship Registry
Notification Service — outbox + delivery.

Messages are enqueued in the caller's transaction and delivered later,
either right after commit (NOTIFY_DELIVER_INLINE) or by the
notification_delivery job. A committed state change is never rolled back
because its message could not be delivered.

Retry policy:
    failed attempt n  → next try after NOTIFY_RETRY_BASE_SECONDS * 2**(n-1), max 1 h
    attempts == max   → status "dead", no further tries
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import func, select

from apprenticeship_registry.core.exceptions import ConflictError, DeliveryFailedError, NotFoundError
from apprenticeship_registry.models.notification import DELIVERABLE_STATUSES, OutboundMessage

logger = logging.getLogger(__name__)

_MAX_BACKOFF_SECONDS = 3600

CONFIRMATION_TEMPLATE = (
    "Вашу заявку на прохождение практики подтвердили! "
    "По окончании практики отчёт необходимо загрузить по ссылке: {upload_url}"
)


def confirmation_text(flag: str) -> str:
    """Return the student-facing confirmation text for a workflow flag.

    All four flags share one message; ``flag`` is accepted so a per-flag
    wording can be introduced without touching callers.
    """
    upload_url = current_app.config.get("REPORT_UPLOAD_URL", "https://auth.mkrit.ru")
    return CONFIRMATION_TEMPLATE.format(upload_url=upload_url)


def retry_delay(attempts: int, base_seconds: int) -> timedelta:
    """Exponential backoff after ``attempts`` failed tries."""
    seconds = base_seconds * (2 ** max(attempts - 1, 0))
    return timedelta(seconds=min(seconds, _MAX_BACKOFF_SECONDS))


def _gateway(gateway=None):
    if gateway is not None:
        return gateway
    from apprenticeship_registry.integrations.telegram_gateway import telegram_gateway
    return telegram_gateway


class NotificationService:
    """Stateless service class for outbox operations."""

    # ── Enqueue ───────────────────────────────────────────────────────────

    @staticmethod
    def enqueue(ctx, *, channel_id, text, category="system", user_id=None,
                apprenticeship_id=None, parse_mode="HTML"):
        """
        Add a queued message to the outbox.

        Does NOT commit — the caller's transaction owns the row so the
        message exists if and only if the triggering change exists.
        """
        return ctx.store.create(OutboundMessage, {
            "channel_id": str(channel_id),
            "text": text,
            "category": category,
            "user_id": user_id,
            "apprenticeship_id": apprenticeship_id,
            "parse_mode": parse_mode,
            "status": "queued",
            "attempts": 0,
            "max_attempts": current_app.config.get("NOTIFY_MAX_ATTEMPTS", 5),
            "next_attempt_at": datetime.now(timezone.utc),
        })

    # ── Delivery ──────────────────────────────────────────────────────────

    @staticmethod
    def _attempt(msg, gateway, now):
        """Send one message and record the outcome on the row.

        A send refused by an open circuit breaker never reached Telegram:
        the row is rescheduled for when the circuit half-opens and
        ``attempts`` is left alone.
        """
        result = gateway.send(msg.channel_id, msg.text, msg.parse_mode)
        if result.circuit_open:
            msg.next_attempt_at = now + timedelta(seconds=result.retry_after)
            logger.info("Message %s deferred %ss, Telegram circuit open", msg.id, result.retry_after)
            return result

        msg.attempts = (msg.attempts or 0) + 1
        if result.ok:
            msg.status = "sent"
            msg.sent_at = now
            msg.last_error = None
            logger.info("Message %s delivered to %s (attempt %d)", msg.id, msg.channel_id, msg.attempts)
            return result

        msg.last_error = (result.error or "unknown error")[:1000]
        if msg.attempts >= (msg.max_attempts or 1):
            msg.status = "dead"
            logger.error("Message %s dead after %d attempts: %s", msg.id, msg.attempts, msg.last_error)
        else:
            msg.status = "failed"
            base = current_app.config.get("NOTIFY_RETRY_BASE_SECONDS", 30)
            msg.next_attempt_at = now + retry_delay(msg.attempts, base)
            logger.warning("Message %s failed (attempt %d/%d): %s",
                           msg.id, msg.attempts, msg.max_attempts, msg.last_error)
        return result

    @classmethod
    def deliver(cls, ctx, message_id, gateway=None):
        """
        Deliver a single message now, regardless of its schedule.

        Raises:
            NotFoundError: unknown message id.
            ConflictError: message already sent.
            DeliveryFailedError: the channel rejected the message; the
                attempt is recorded and committed before raising.
        """
        msg = ctx.store.get(OutboundMessage, message_id)
        if msg is None:
            raise NotFoundError("OutboundMessage", message_id)
        if msg.status == "sent":
            raise ConflictError("OutboundMessage", "already delivered", resource_id=message_id)

        result = cls._attempt(msg, _gateway(gateway), datetime.now(timezone.utc))
        ctx.store.commit()
        if not result.ok:
            raise DeliveryFailedError(msg.channel_id, result.error, result.status_code)
        return msg.to_dict()

    @classmethod
    def try_deliver_now(cls, ctx, message_id, gateway=None) -> bool:
        """Best-effort immediate delivery; failures stay queued for the worker."""
        try:
            cls.deliver(ctx, message_id, gateway=gateway)
        except DeliveryFailedError as exc:
            logger.warning("Inline delivery failed, left for retry: %s", exc,
                           extra=ctx.log_extra(message_id=message_id))
            return False
        return True

    @classmethod
    def deliver_pending(cls, ctx, gateway=None, limit=50, now=None) -> dict:
        """
        Deliver every due message (queued or failed, next_attempt_at <= now).

        The run stops at the first message the circuit breaker refuses;
        that message is counted as deferred and the rest stay due.

        Returns:
            Summary dict: {"processed", "sent", "failed", "dead", "deferred"}.
        """
        now = now or datetime.now(timezone.utc)
        gw = _gateway(gateway)
        due = ctx.store.scalars(
            select(OutboundMessage)
            .where(
                OutboundMessage.status.in_(DELIVERABLE_STATUSES),
                OutboundMessage.next_attempt_at <= now,
            )
            .order_by(OutboundMessage.id.asc())
            .limit(limit)
        )

        results = {"processed": 0, "sent": 0, "failed": 0, "dead": 0, "deferred": 0}
        for msg in due:
            result = cls._attempt(msg, gw, now)
            # Commit per message so one bad row cannot undo earlier deliveries
            ctx.store.commit()
            if result.circuit_open:
                results["deferred"] += 1
                break
            results["processed"] += 1
            results[msg.status] += 1

        if results["processed"] or results["deferred"]:
            logger.info("Outbox delivery run: %s", results)
        return results

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_messages(ctx, *, status=None, category=None, user_id=None,
                      apprenticeship_id=None, limit=50, offset=0):
        """Retrieve outbox messages, newest first."""
        filters = {}
        if status:
            filters["status"] = status
        if category:
            filters["category"] = category
        if user_id:
            filters["user_id"] = user_id
        if apprenticeship_id:
            filters["apprenticeship_id"] = apprenticeship_id
        total = ctx.store.count(OutboundMessage, filters)
        items = ctx.store.find_many(
            OutboundMessage, filters,
            order_by=OutboundMessage.id.desc(), limit=limit, offset=offset,
        )
        return [m.to_dict() for m in items], total

    @staticmethod
    def stats(ctx) -> dict:
        """Message counts per status plus the delivery backlog."""
        rows = ctx.store.rows(
            select(OutboundMessage.status, func.count(OutboundMessage.id))
            .group_by(OutboundMessage.status)
        )
        by_status = {status: 0 for status in ("queued", "sent", "failed", "dead")}
        for status, cnt in rows:
            by_status[status] = cnt
        return {
            "by_status": by_status,
            "backlog": by_status["queued"] + by_status["failed"],
            "total": sum(by_status.values()),
        }
