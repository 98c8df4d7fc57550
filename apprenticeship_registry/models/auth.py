"""
Directory models — users, curators, curator groups.

A User is the apprentice. ``id`` is the internal key used by every
relation; ``telegram_id`` is the external messaging-channel id the
notifier delivers to. The two are never interchangeable.
"""

import uuid
from datetime import datetime, timezone

from apprenticeship_registry.models import db


USER_ROLES = {"STUDENT", "CURATOR", "ADMIN"}


def _uuid():
    return str(uuid.uuid4())


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    telegram_id = db.Column(db.String(64), unique=True, nullable=False, index=True,
                            comment="External chat id used for notification delivery")
    full_name = db.Column(db.String(200), default="")
    role = db.Column(db.String(20), default="STUDENT")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    apprenticeships = db.relationship("Apprenticeship", back_populates="user", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "telegram_id": self.telegram_id,
            "full_name": self.full_name,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id} tg={self.telegram_id}>"


# ═══════════════════════════════════════════════════════════════
# 2. CURATORS
# ═══════════════════════════════════════════════════════════════
class Curator(db.Model):
    __tablename__ = "curators"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    full_name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
        }

    def __repr__(self):
        return f"<Curator {self.id}: {self.full_name}>"


# ═══════════════════════════════════════════════════════════════
# 3. CURATOR GROUPS
# ═══════════════════════════════════════════════════════════════
class CuratorGroup(db.Model):
    __tablename__ = "curator_groups"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), unique=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {"id": self.id, "name": self.name}

    def __repr__(self):
        return f"<CuratorGroup {self.name}>"
