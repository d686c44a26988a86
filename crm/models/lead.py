"""Lead model.

A prospective customer tracked through the sales funnel:
new -> contacted -> qualified -> proposal -> negotiation -> won | lost

assigned_to_id NULL means "unassigned". User references are soft (no DB
foreign key): deleting a user leaves the lead in place.
"""

import uuid
from datetime import datetime, timezone

from crm.extensions import db


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class Lead(db.Model):
    __tablename__ = "leads"

    STATUSES = [
        "new",
        "contacted",
        "qualified",
        "proposal",
        "negotiation",
        "won",
        "lost",
    ]
    SOURCES = [
        "website",
        "referral",
        "social_media",
        "email_campaign",
        "event",
        "other",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50), nullable=True)
    company = db.Column(db.String(255), nullable=False)
    position = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    source = db.Column(db.String(50), default="other", nullable=False, index=True)
    status = db.Column(db.String(50), default="new", nullable=False, index=True)
    assigned_to_id = db.Column(db.String(36), nullable=True, index=True)
    created_by_id = db.Column(db.String(36), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    custom_fields = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # --- Relationships ---
    assigned_to = db.relationship(
        "User",
        primaryjoin="foreign(Lead.assigned_to_id) == User.id",
        viewonly=True,
        lazy="joined",
    )
    created_by = db.relationship(
        "User",
        primaryjoin="foreign(Lead.created_by_id) == User.id",
        viewonly=True,
        lazy="joined",
    )
    activities = db.relationship(
        "LeadActivity",
        back_populates="lead",
        cascade="all, delete-orphan",
        order_by="LeadActivity.position",
    )

    def add_activity(self, activity_type, description, actor_id, due_date=None):
        """Append an activity entry. Flushed together with the lead."""
        activity = LeadActivity(
            activity_type=activity_type,
            description=description,
            created_by_id=actor_id,
            due_date=due_date,
            position=len(self.activities),
        )
        self.activities.append(activity)
        return activity

    def to_dict(self, include_activities=False):
        data = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "position": self.position,
            "address": self.address,
            "source": self.source,
            "status": self.status,
            "assignedTo": self.assigned_to.to_ref() if self.assigned_to else None,
            "createdBy": self.created_by.to_ref() if self.created_by else None,
            "notes": self.notes,
            "customFields": dict(self.custom_fields or {}),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
        if include_activities:
            data["activities"] = [a.to_dict() for a in self.activities]
        return data

    def __repr__(self):
        return f"<Lead {self.name} ({self.status})>"


class LeadActivity(db.Model):
    """Append-only activity log entry, owned by its lead."""

    __tablename__ = "lead_activities"

    TYPES = ["note", "call", "email", "meeting", "task", "status_change"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    lead_id = db.Column(
        db.String(36),
        db.ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    activity_type = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text, nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    completed = db.Column(db.Boolean, default=False)
    position = db.Column(db.Integer, default=0, nullable=False)
    created_by_id = db.Column(db.String(36), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    # --- Relationships ---
    lead = db.relationship("Lead", back_populates="activities")
    created_by = db.relationship(
        "User",
        primaryjoin="foreign(LeadActivity.created_by_id) == User.id",
        viewonly=True,
        lazy="joined",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.activity_type,
            "description": self.description,
            "dueDate": _iso(self.due_date),
            "completed": bool(self.completed),
            "createdBy": self.created_by.to_ref() if self.created_by else None,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<LeadActivity {self.activity_type} on {self.lead_id}>"
