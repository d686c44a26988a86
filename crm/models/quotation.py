"""Quotation model.

A priced proposal tied to a lead. The client block is a snapshot taken when
the quotation is written, not a live reference to the lead.

Status: draft -> sent -> accepted | rejected | expired
"""

import uuid
from datetime import datetime, timezone

from crm.extensions import db


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class Quotation(db.Model):
    __tablename__ = "quotations"

    STATUSES = ["draft", "sent", "accepted", "rejected", "expired"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    quotation_number = db.Column(db.String(100), unique=True, nullable=False)
    lead_id = db.Column(db.String(36), nullable=False, index=True)

    # --- Client snapshot ---
    client_name = db.Column(db.String(255), nullable=False)
    client_email = db.Column(db.String(255), nullable=False)
    client_company = db.Column(db.String(255), nullable=False)
    client_address = db.Column(db.String(500), nullable=True)

    date = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=False)
    items = db.Column(db.JSON, default=list)  # [{description, quantity, unitPrice, amount}]
    subtotal = db.Column(db.Float, nullable=False, default=0)
    tax = db.Column(db.Float, nullable=False, default=0)
    total = db.Column(db.Float, nullable=False, default=0)
    status = db.Column(db.String(50), default="draft", nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)
    terms = db.Column(db.Text, nullable=True)
    pdf_url = db.Column(db.String(500), nullable=True)
    custom_fields = db.Column(db.JSON, default=dict)
    created_by_id = db.Column(db.String(36), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # --- Relationships (soft references) ---
    lead = db.relationship(
        "Lead",
        primaryjoin="foreign(Quotation.lead_id) == Lead.id",
        viewonly=True,
        lazy="joined",
    )
    created_by = db.relationship(
        "User",
        primaryjoin="foreign(Quotation.created_by_id) == User.id",
        viewonly=True,
        lazy="joined",
    )

    @property
    def pdf_storage_path(self):
        return f"quotations/{self.id}.pdf"

    def to_dict(self):
        lead = self.lead
        return {
            "id": self.id,
            "quotationNumber": self.quotation_number,
            "lead": (
                {
                    "id": lead.id,
                    "name": lead.name,
                    "email": lead.email,
                    "company": lead.company,
                }
                if lead else None
            ),
            "client": {
                "name": self.client_name,
                "email": self.client_email,
                "company": self.client_company,
                "address": self.client_address,
            },
            "date": _iso(self.date),
            "validUntil": _iso(self.valid_until),
            "items": list(self.items or []),
            "subtotal": self.subtotal,
            "tax": self.tax,
            "total": self.total,
            "status": self.status,
            "notes": self.notes,
            "terms": self.terms,
            "pdfUrl": self.pdf_url,
            "customFields": dict(self.custom_fields or {}),
            "createdBy": self.created_by.to_ref() if self.created_by else None,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Quotation {self.quotation_number} ({self.status})>"
