"""
Apprenticeship Registry
Apprenticeship domain models.

Models:
    - ApprenticeshipType: named placement category
    - Apprenticeship: one student's practical-training placement

The four workflow flags are one-way: they start False and are only ever
flipped to True by the status transition service.
"""

import uuid
from datetime import datetime, timezone

from apprenticeship_registry.models import db


# ── Constants ────────────────────────────────────────────────────────────────

WORKFLOW_FLAGS = ("attendance", "signed", "report_signed", "referral_signed")

# Fields a full-record update may write. Flags are excluded on purpose.
UPDATABLE_FIELDS = (
    "start_date", "end_date", "academic_year", "employment_status",
    "referral", "report",
)


def _uuid():
    return str(uuid.uuid4())


class ApprenticeshipType(db.Model):
    """Placement category (e.g. educational, industrial, pre-diploma)."""

    __tablename__ = "apprenticeship_types"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), unique=True, nullable=False)
    description = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ApprenticeshipType {self.name}>"


class Apprenticeship(db.Model):
    """
    Apprenticeship record.

    Belongs to exactly one user and one type; curator and curator group
    are optional.
    """

    __tablename__ = "apprenticeships"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    curator_id = db.Column(
        db.String(36), db.ForeignKey("curators.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    curator_group_id = db.Column(
        db.String(36), db.ForeignKey("curator_groups.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    apprenticeship_type_id = db.Column(
        db.String(36), db.ForeignKey("apprenticeship_types.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )

    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)

    # Workflow flags
    attendance = db.Column(db.Boolean, nullable=False, default=False)
    signed = db.Column(db.Boolean, nullable=False, default=False)
    report_signed = db.Column(db.Boolean, nullable=False, default=False)
    referral_signed = db.Column(db.Boolean, nullable=False, default=False)

    academic_year = db.Column(db.String(20), nullable=True)
    employment_status = db.Column(db.String(100), nullable=True)
    referral = db.Column(db.String(500), nullable=True, comment="Referral document reference")
    report = db.Column(db.String(500), nullable=True, comment="Report document reference")

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    user = db.relationship("User", back_populates="apprenticeships")
    curator = db.relationship("Curator")
    curator_group = db.relationship("CuratorGroup")
    apprenticeship_type = db.relationship("ApprenticeshipType")

    def flags(self):
        return {flag: bool(getattr(self, flag)) for flag in WORKFLOW_FLAGS}

    def to_dict(self, include_relations=False):
        d = {
            "id": self.id,
            "user_id": self.user_id,
            "curator_id": self.curator_id,
            "curator_group_id": self.curator_group_id,
            "apprenticeship_type_id": self.apprenticeship_type_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "academic_year": self.academic_year,
            "employment_status": self.employment_status,
            "referral": self.referral,
            "report": self.report,
            **self.flags(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_relations:
            d["user"] = self.user.to_dict() if self.user else None
            d["curator"] = self.curator.to_dict() if self.curator else None
            d["curator_group"] = self.curator_group.to_dict() if self.curator_group else None
            d["apprenticeship_type"] = (
                self.apprenticeship_type.to_dict() if self.apprenticeship_type else None
            )
        return d

    def __repr__(self):
        return f"<Apprenticeship {self.id} user={self.user_id}>"
