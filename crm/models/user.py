"""User model.

Stores credentials, role, profile, per-user settings and security
preferences. Flask-Login integration via UserMixin.

Leads and quotations reference users by id only; deleting a user never
cascades to them.
"""

import uuid
from datetime import datetime, timezone

from flask_login import UserMixin

from crm.extensions import db


def _utcnow():
    return datetime.now(timezone.utc)


DEFAULT_SETTINGS = {
    "language": "English",
    "timezone": "UTC",
    "emailNotifications": True,
    "smsNotifications": False,
    "appNotifications": True,
    "theme": "system",
}

DEFAULT_SECURITY = {
    "twoFactorAuth": False,
    "sessionTimeout": True,
    "loginNotifications": True,
    "passwordExpiry": True,
}


class User(UserMixin, db.Model):
    __tablename__ = "users"

    ROLES = ["admin", "manager", "employee"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default="employee", nullable=False)
    position = db.Column(db.String(255), default="")
    phone = db.Column(db.String(50), default="")
    bio = db.Column(db.Text, default="")
    avatar = db.Column(db.String(500), default="")
    is_active = db.Column(db.Boolean, default=True)
    settings = db.Column(db.JSON, default=lambda: dict(DEFAULT_SETTINGS))
    security = db.Column(db.JSON, default=lambda: dict(DEFAULT_SECURITY))
    password_last_changed = db.Column(db.DateTime(timezone=True), default=_utcnow)
    password_reset_token = db.Column(db.String(255), nullable=True, index=True)
    password_reset_expires = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # --- Relationships ---
    login_events = db.relationship(
        "LoginEvent",
        back_populates="user",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="LoginEvent.timestamp.desc()",
    )

    def to_ref(self):
        """Compact reference embedded in leads, quotations and activities."""
        return {"id": self.id, "name": self.name, "email": self.email}

    def to_dict(self, include_private=True):
        data = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "position": self.position or "",
            "phone": self.phone or "",
            "bio": self.bio or "",
            "avatar": self.avatar or "",
            "isActive": bool(self.is_active),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_private:
            data["settings"] = {**DEFAULT_SETTINGS, **(self.settings or {})}
            security = {**DEFAULT_SECURITY, **(self.security or {})}
            security["passwordLastChanged"] = (
                self.password_last_changed.isoformat()
                if self.password_last_changed else None
            )
            data["security"] = security
        return data

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"


class LoginEvent(db.Model):
    """One successful login, newest first. Trimmed to LOGIN_HISTORY_LIMIT."""

    __tablename__ = "login_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, index=True
    )
    device = db.Column(db.String(500), default="Unknown")
    browser = db.Column(db.String(500), default="Unknown")
    ip = db.Column(db.String(64), default="Unknown")
    location = db.Column(db.String(255), default="Unknown")
    timestamp = db.Column(db.DateTime(timezone=True), default=_utcnow)

    user = db.relationship("User", back_populates="login_events")

    def to_dict(self):
        return {
            "id": self.id,
            "device": self.device,
            "browser": self.browser,
            "ip": self.ip,
            "location": self.location,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<LoginEvent {self.user_id} @ {self.timestamp}>"
