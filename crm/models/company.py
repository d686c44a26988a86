"""Company settings model.

Exactly one row exists at a time: its key is fixed to SINGLETON_ID and a
check constraint rejects any other. It is created lazily with defaults by
company_service.get_or_create_company() the first time anything reads it.
CustomField rows define the typed schema that lead/quotation customFields
values are validated against.
"""

import uuid
from datetime import datetime, timezone

from crm.extensions import db


def _utcnow():
    return datetime.now(timezone.utc)


class Company(db.Model):
    __tablename__ = "companies"

    SINGLETON_ID = "default"
    __table_args__ = (
        db.CheckConstraint(f"id = '{SINGLETON_ID}'", name="ck_companies_singleton"),
    )

    # JSON key -> column, for the plain string settings
    FIELDS = {
        "name": "name",
        "address": "address",
        "city": "city",
        "state": "state",
        "zipCode": "zip_code",
        "country": "country",
        "phone": "phone",
        "website": "website",
        "taxId": "tax_id",
        "industry": "industry",
        "about": "about",
    }

    id = db.Column(db.String(36), primary_key=True, default=SINGLETON_ID)
    name = db.Column(db.String(255), nullable=False, default="My Company")
    address = db.Column(db.String(500), default="")
    city = db.Column(db.String(255), default="")
    state = db.Column(db.String(255), default="")
    zip_code = db.Column(db.String(50), default="")
    country = db.Column(db.String(255), default="")
    phone = db.Column(db.String(50), default="")
    website = db.Column(db.String(500), default="")
    tax_id = db.Column(db.String(100), default="")
    industry = db.Column(db.String(255), default="")
    logo = db.Column(db.String(500), default="")
    about = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    custom_fields = db.relationship(
        "CustomField",
        back_populates="company",
        cascade="all, delete-orphan",
        order_by="CustomField.position",
    )

    def to_dict(self):
        data = {key: getattr(self, column) or "" for key, column in self.FIELDS.items()}
        data.update({
            "id": self.id,
            "logo": self.logo or "",
            "customFields": [f.to_dict() for f in self.custom_fields],
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        })
        return data

    def __repr__(self):
        return f"<Company {self.name}>"


class CustomField(db.Model):
    """Definition of one custom field on leads, quotations or clients."""

    __tablename__ = "custom_fields"

    ENTITIES = ["lead", "quotation", "client"]
    TYPES = ["text", "number", "date", "dropdown", "checkbox"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    company_id = db.Column(
        db.String(36), db.ForeignKey("companies.id"), nullable=False, index=True
    )
    name = db.Column(db.String(255), nullable=False)
    entity = db.Column(db.String(50), nullable=False)
    field_type = db.Column(db.String(50), nullable=False)
    options = db.Column(db.JSON, default=list)  # dropdown choices
    required = db.Column(db.Boolean, default=False)
    position = db.Column(db.Integer, default=0, nullable=False)

    company = db.relationship("Company", back_populates="custom_fields")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "entity": self.entity,
            "type": self.field_type,
            "options": list(self.options or []),
            "required": bool(self.required),
        }

    def __repr__(self):
        return f"<CustomField {self.entity}.{self.name} ({self.field_type})>"
