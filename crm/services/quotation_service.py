"""Quotation service - pricing, lifecycle and the lead cascades.

Totals:
    item.amount = quantity * unitPrice   (when not given)
    subtotal    = sum(item.amount)       (when not given)
    tax         = DEFAULT_TAX_RATE * subtotal  (when not given)
    total       = subtotal + tax         (a disagreeing explicit total is rejected)

Lead cascades (run after the quotation commit, never fatal):
    created                  lead new/contacted/qualified -> proposal
    status -> accepted       lead -> won
    status -> rejected       lead -> lost

Functions flush but do NOT commit; the caller commits.
"""

import logging
from datetime import datetime, timezone

from flask import current_app

from crm import policy
from crm.errors import NotFoundError, ValidationError
from crm.extensions import db
from crm.models.lead import Lead
from crm.models.quotation import Quotation
from crm.services import custom_fields, email_service, lead_service, pdf_service, storage_service
from crm.services.company_service import get_or_create_company
from crm.services.inputs import choice, clean_email, parse_datetime, require, sanitize

logger = logging.getLogger(__name__)

PRE_PROPOSAL_STATUSES = ("new", "contacted", "qualified")

# quotation status -> (lead status, activity description)
LEAD_CASCADES = {
    "accepted": ("won", "Status changed to won due to quotation acceptance"),
    "rejected": ("lost", "Status changed to lost due to quotation rejection"),
}

# Changing any of these regenerates the PDF
CONTENT_FIELDS = ("items", "subtotal", "tax", "total", "client", "notes", "terms", "validUntil", "date")

MONEY_TOLERANCE = 0.005


def get_quotation_or_404(quotation_id):
    quotation = db.session.get(Quotation, quotation_id)
    if quotation is None:
        raise NotFoundError("Quotation not found")
    return quotation


# ─── Pricing ─────────────────────────────────────────────────

def _number(value, label, minimum=0):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"'{label}' must be a number")
    if value < minimum:
        raise ValidationError(f"'{label}' must be at least {minimum}")
    return value


def clean_items(items):
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    cleaned = []
    for i, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Item {i} must be an object")
        description = sanitize(item.get("description") or "")
        if not description:
            raise ValidationError(f"Item {i}: description is required")
        quantity = _number(item.get("quantity"), f"item {i} quantity", minimum=1)
        unit_price = _number(item.get("unitPrice"), f"item {i} unitPrice")
        amount = item.get("amount")
        if amount is None:
            amount = quantity * unit_price
        cleaned.append({
            "description": description,
            "quantity": quantity,
            "unitPrice": unit_price,
            "amount": _number(amount, f"item {i} amount"),
        })
    return cleaned


def compute_totals(items, subtotal=None, tax=None, total=None, tax_rate=None):
    """Return (subtotal, tax, total) with the defaults filled in."""
    if tax_rate is None:
        tax_rate = current_app.config["DEFAULT_TAX_RATE"]

    if subtotal is None:
        subtotal = sum(item["amount"] for item in items)
    else:
        subtotal = _number(subtotal, "subtotal")

    if tax is None:
        tax = subtotal * tax_rate
    else:
        tax = _number(tax, "tax")

    subtotal, tax = round(subtotal, 2), round(tax, 2)
    expected = round(subtotal + tax, 2)
    if total is not None and abs(_number(total, "total") - expected) > MONEY_TOLERANCE:
        raise ValidationError("Total must equal subtotal plus tax")
    return subtotal, tax, expected


# ─── Create / update ─────────────────────────────────────────

def _apply_client(quotation, client, partial=False):
    if not isinstance(client, dict):
        raise ValidationError("Client details are required")
    if not partial:
        require(client, "name", "email", "company")
    if "name" in client or not partial:
        quotation.client_name = sanitize(client.get("name"))
    if "email" in client or not partial:
        quotation.client_email = clean_email(client.get("email"))
    if "company" in client or not partial:
        quotation.client_company = sanitize(client.get("company"))
    if "address" in client:
        quotation.client_address = sanitize(client.get("address"))
    for attr in ("client_name", "client_company"):
        if not getattr(quotation, attr):
            raise ValidationError("Client name and company cannot be empty")


def _check_number_available(number, exclude_id=None):
    query = Quotation.query.filter(Quotation.quotation_number == number)
    if exclude_id:
        query = query.filter(Quotation.id != exclude_id)
    if query.first():
        raise ValidationError(f"Quotation number '{number}' already exists")


def create_quotation(data, actor):
    """Create a draft quotation for an existing lead.

    Employees may only quote leads assigned to them.
    """
    lead = db.session.get(Lead, data.get("lead")) if data.get("lead") else None
    if lead is None:
        raise NotFoundError("Lead not found")
    policy.authorize(actor.role, actor.id, "quotation:create", owner_id=lead.assigned_to_id)

    require(data, "quotationNumber", "validUntil")
    number = sanitize(str(data.get("quotationNumber")))
    _check_number_available(number)

    items = clean_items(data.get("items"))
    subtotal, tax, total = compute_totals(
        items, data.get("subtotal"), data.get("tax"), data.get("total")
    )

    quotation = Quotation(
        quotation_number=number,
        lead_id=lead.id,
        date=parse_datetime(data.get("date"), "date") or datetime.now(timezone.utc),
        valid_until=parse_datetime(data.get("validUntil"), "validUntil"),
        items=items,
        subtotal=subtotal,
        tax=tax,
        total=total,
        status=choice(data.get("status") or "draft", Quotation.STATUSES, "status"),
        notes=sanitize(data.get("notes")),
        terms=sanitize(data.get("terms")),
        custom_fields=custom_fields.validate_values("quotation", data.get("customFields")),
        created_by_id=actor.id,
    )
    _apply_client(quotation, data.get("client"))

    db.session.add(quotation)
    db.session.flush()
    logger.info("Quotation %s created by %s", quotation.quotation_number, actor.id)
    return quotation


def update_quotation(quotation, data):
    """Apply whitelisted fields. Returns the status before the update."""
    old_status = quotation.status

    if "quotationNumber" in data:
        number = sanitize(str(data.get("quotationNumber") or ""))
        if not number:
            raise ValidationError("'quotationNumber' cannot be empty")
        _check_number_available(number, exclude_id=quotation.id)
        quotation.quotation_number = number
    if "client" in data:
        _apply_client(quotation, data["client"], partial=True)
    if "date" in data:
        quotation.date = parse_datetime(data["date"], "date") or quotation.date
    if "validUntil" in data:
        valid_until = parse_datetime(data["validUntil"], "validUntil")
        if valid_until is None:
            raise ValidationError("'validUntil' cannot be empty")
        quotation.valid_until = valid_until
    for key in ("notes", "terms"):
        if key in data:
            setattr(quotation, key, sanitize(data[key]))
    if "customFields" in data:
        quotation.custom_fields = custom_fields.validate_values(
            "quotation", data["customFields"], existing=quotation.custom_fields
        )

    if any(key in data for key in ("items", "subtotal", "tax", "total")):
        items = clean_items(data["items"]) if "items" in data else list(quotation.items or [])
        # Without new items the stored subtotal/tax stay unless overridden.
        subtotal = data.get("subtotal", None if "items" in data else quotation.subtotal)
        tax = data.get("tax", None if ("items" in data or "subtotal" in data) else quotation.tax)
        quotation.items = items
        quotation.subtotal, quotation.tax, quotation.total = compute_totals(
            items, subtotal, tax, data.get("total")
        )

    if "status" in data:
        quotation.status = choice(data["status"], Quotation.STATUSES, "status")

    db.session.flush()
    return old_status


def content_changed(data):
    return any(key in data for key in CONTENT_FIELDS)


def mark_sent(quotation):
    quotation.status = "sent"
    db.session.flush()


def delete_quotation(quotation):
    db.session.delete(quotation)
    db.session.flush()


# ─── Secondary effects (run through side_effects.best_effort) ─

def attach_pdf(quotation):
    """Render the PDF, store it and record its URL."""
    data = pdf_service.generate_quotation_pdf(quotation, company=get_or_create_company())
    quotation.pdf_url = storage_service.upload_bytes(
        quotation.pdf_storage_path, data, "application/pdf"
    )
    db.session.flush()


def remove_pdf(storage_path):
    storage_service.delete_file(storage_path)


def advance_lead_to_proposal(lead_id, actor_id):
    lead = db.session.get(Lead, lead_id)
    if lead is None or lead.status not in PRE_PROPOSAL_STATUSES:
        return
    lead_service.change_status(
        lead,
        "proposal",
        actor_id,
        description=f"Status changed from {lead.status} to proposal due to quotation creation",
    )


def cascade_status_to_lead(quotation, old_status, actor_id):
    """Move the lead to won/lost on the first transition into accepted/rejected."""
    if quotation.status == old_status or quotation.status not in LEAD_CASCADES:
        return
    lead = db.session.get(Lead, quotation.lead_id)
    if lead is None:
        logger.warning("Quotation %s references missing lead %s", quotation.id, quotation.lead_id)
        return
    lead_status, description = LEAD_CASCADES[quotation.status]
    lead_service.change_status(lead, lead_status, actor_id, description=description)


def send_quotation_email(quotation, sender):
    pdf_url = quotation.pdf_url
    if pdf_url and pdf_url.startswith("/"):
        pdf_url = current_app.config["APP_BASE_URL"].rstrip("/") + pdf_url
    email_service.send_email(
        to=quotation.client_email,
        subject=f"Quotation {quotation.quotation_number}",
        template="emails/quotation_sent.html",
        context={
            "quotation": quotation,
            "company": get_or_create_company(),
            "sender": sender,
            "pdf_url": pdf_url,
        },
        reply_to=sender.email,
    )
