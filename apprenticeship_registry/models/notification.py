"""
Apprenticeship Registry
Outbound notification model.

Models:
    - OutboundMessage: outbox row for one message to one messaging channel

Rows are written in the same transaction as the state change that caused
them and are delivered later by the notification_delivery job.
"""

from datetime import datetime, timezone

from apprenticeship_registry.models import db


# ── Constants ────────────────────────────────────────────────────────────────

MESSAGE_STATUSES = {"queued", "sent", "failed", "dead"}
DELIVERABLE_STATUSES = ("queued", "failed")


class OutboundMessage(db.Model):
    """
    Outbox entry.

    One record per recipient per event.
    """

    __tablename__ = "outbound_messages"

    id = db.Column(db.Integer, primary_key=True)
    apprenticeship_id = db.Column(
        db.String(36), db.ForeignKey("apprenticeships.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    user_id = db.Column(db.String(36), nullable=True, index=True)
    channel_id = db.Column(db.String(64), nullable=False, comment="Telegram chat id")
    category = db.Column(db.String(30), default="system", comment="Workflow flag that triggered the message")
    text = db.Column(db.Text, nullable=False)
    parse_mode = db.Column(db.String(20), default="HTML")

    status = db.Column(db.String(20), default="queued", index=True,
                       comment="queued, sent, failed, dead")
    attempts = db.Column(db.Integer, default=0)
    max_attempts = db.Column(db.Integer, default=5)
    next_attempt_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    last_error = db.Column(db.Text, nullable=True)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "apprenticeship_id": self.apprenticeship_id,
            "user_id": self.user_id,
            "channel_id": self.channel_id,
            "category": self.category,
            "text": self.text,
            "parse_mode": self.parse_mode,
            "status": self.status,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "next_attempt_at": self.next_attempt_at.isoformat() if self.next_attempt_at else None,
            "last_error": self.last_error,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<OutboundMessage {self.id} [{self.status}] → {self.channel_id}>"
