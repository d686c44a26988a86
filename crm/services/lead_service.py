"""Lead service - create, update, delete, activity log.

All free text is sanitized with bleach. A status change and the
`status_change` activity describing it are flushed together, so they
commit (or roll back) as one unit.

Functions flush but do NOT commit; the caller commits.
"""

import logging

from crm import policy
from crm.errors import NotFoundError, ValidationError
from crm.extensions import db
from crm.models.lead import Lead, LeadActivity
from crm.models.user import User
from crm.services import custom_fields
from crm.services.inputs import choice, clean_email, parse_datetime, require, sanitize

logger = logging.getLogger(__name__)

# JSON key -> column, free text
TEXT_FIELDS = {
    "name": "name",
    "phone": "phone",
    "company": "company",
    "position": "position",
    "address": "address",
    "notes": "notes",
}
REQUIRED_TEXT = ("name", "company")


def get_lead_or_404(lead_id):
    lead = db.session.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError("Lead not found")
    return lead


def _resolve_assignee(value):
    if value in (None, ""):
        return None
    user = db.session.get(User, value)
    if user is None:
        raise ValidationError("Assigned user not found")
    return user.id


def create_lead(data, actor):
    """Create a lead owned by `actor`.

    An employee creating a lead without an assignee gets it assigned to
    themselves, so they can still see it.
    """
    require(data, "name", "email", "company")

    lead = Lead(
        email=clean_email(data.get("email")),
        source=choice(data.get("source") or "other", Lead.SOURCES, "source"),
        status=choice(data.get("status") or "new", Lead.STATUSES, "status"),
        created_by_id=actor.id,
        custom_fields=custom_fields.validate_values("lead", data.get("customFields")),
    )
    for key, column in TEXT_FIELDS.items():
        setattr(lead, column, sanitize(data.get(key)))

    assignee = _resolve_assignee(data.get("assignedTo"))
    if assignee is None and actor.role == policy.EMPLOYEE:
        assignee = actor.id
    lead.assigned_to_id = assignee

    db.session.add(lead)
    db.session.flush()
    logger.info("Lead %s created by %s", lead.id, actor.id)
    return lead


def update_lead(lead, data, actor):
    """Apply whitelisted fields from `data` to `lead`."""
    for key, column in TEXT_FIELDS.items():
        if key in data:
            value = sanitize(data[key])
            if key in REQUIRED_TEXT and not value:
                raise ValidationError(f"'{key}' cannot be empty")
            setattr(lead, column, value)

    if "email" in data:
        lead.email = clean_email(data["email"])
    if "source" in data:
        lead.source = choice(data["source"], Lead.SOURCES, "source")
    if "assignedTo" in data:
        lead.assigned_to_id = _resolve_assignee(data["assignedTo"])
    if "customFields" in data:
        lead.custom_fields = custom_fields.validate_values(
            "lead", data["customFields"], existing=lead.custom_fields
        )

    new_status = data.get("status")
    if new_status is not None and new_status != lead.status:
        change_status(lead, choice(new_status, Lead.STATUSES, "status"), actor.id)

    db.session.flush()
    return lead


def change_status(lead, new_status, actor_id, description=None):
    """Set the status and log it as an activity in the same flush."""
    description = description or f"Status changed from {lead.status} to {new_status}"
    lead.status = new_status
    lead.add_activity("status_change", description, actor_id)
    db.session.flush()


def add_activity(lead, data, actor):
    require(data, "type", "description")
    activity = lead.add_activity(
        choice(data.get("type"), LeadActivity.TYPES, "activity type"),
        sanitize(data.get("description")),
        actor.id,
        due_date=parse_datetime(data.get("dueDate"), "dueDate"),
    )
    if data.get("completed") is not None:
        activity.completed = bool(data.get("completed"))
    db.session.flush()
    return activity


def delete_lead(lead):
    db.session.delete(lead)
    db.session.flush()
