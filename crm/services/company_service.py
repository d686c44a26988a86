"""Company settings service.

Single-row settings record plus the custom field definitions hanging off
it. Functions flush; the caller commits.
"""

import logging

from sqlalchemy.exc import IntegrityError

from crm.errors import NotFoundError, ValidationError
from crm.extensions import db
from crm.models.company import Company, CustomField

logger = logging.getLogger(__name__)


def _load_company():
    return db.session.get(Company, Company.SINGLETON_ID)


def get_or_create_company():
    """Return the settings row, creating it with defaults on first access.

    Two requests may both find no row; the fixed key makes the slower
    insert fail, and that request reads the winner's row instead.
    """
    company = _load_company()
    if company is not None:
        return company
    try:
        with db.session.begin_nested():
            company = Company(id=Company.SINGLETON_ID)
            db.session.add(company)
    except IntegrityError:
        logger.info("Company settings created concurrently, reloading")
        return _load_company()
    logger.info("Created default company settings")
    return company


def update_company(data):
    company = get_or_create_company()

    if "name" in data and not (data.get("name") or "").strip():
        raise ValidationError("Company name is required")

    for key, column in Company.FIELDS.items():
        if key in data:
            value = data[key]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"'{key}' must be a string")
            setattr(company, column, (value or "").strip())

    db.session.flush()
    return company


def set_logo(url):
    company = get_or_create_company()
    company.logo = url
    db.session.flush()
    return company


# ─── Custom field definitions ────────────────────────────────

def _validate_definition(data, partial=False):
    cleaned = {}

    if not partial or "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Custom field name is required")
        cleaned["name"] = name

    if not partial or "entity" in data:
        entity = data.get("entity")
        if entity not in CustomField.ENTITIES:
            raise ValidationError(
                f"Custom field entity must be one of: {', '.join(CustomField.ENTITIES)}"
            )
        cleaned["entity"] = entity

    if not partial or "type" in data:
        field_type = data.get("type")
        if field_type not in CustomField.TYPES:
            raise ValidationError(
                f"Custom field type must be one of: {', '.join(CustomField.TYPES)}"
            )
        cleaned["field_type"] = field_type

    if "options" in data:
        options = data.get("options") or []
        if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
            raise ValidationError("Custom field options must be a list of strings")
        cleaned["options"] = [o.strip() for o in options if o.strip()]

    if "required" in data:
        cleaned["required"] = bool(data.get("required"))

    return cleaned


def _ensure_unique(company, name, entity, exclude_id=None):
    for field in company.custom_fields:
        if field.id != exclude_id and field.entity == entity and field.name == name:
            raise ValidationError(f"Custom field '{name}' already exists for {entity}")


def _check_dropdown(field):
    if field.field_type == "dropdown" and not field.options:
        raise ValidationError("Dropdown custom fields need at least one option")


def add_custom_field(data):
    company = get_or_create_company()
    cleaned = _validate_definition(data)
    _ensure_unique(company, cleaned["name"], cleaned["entity"])

    cleaned.setdefault("options", [])
    field = CustomField(position=len(company.custom_fields), **cleaned)
    _check_dropdown(field)
    company.custom_fields.append(field)
    db.session.flush()
    return field


def get_custom_field_or_404(field_id):
    company = get_or_create_company()
    for field in company.custom_fields:
        if field.id == field_id:
            return field
    raise NotFoundError("Custom field not found")


def update_custom_field(field_id, data):
    field = get_custom_field_or_404(field_id)
    cleaned = _validate_definition(data, partial=True)
    _ensure_unique(
        field.company,
        cleaned.get("name", field.name),
        cleaned.get("entity", field.entity),
        exclude_id=field.id,
    )
    for attr, value in cleaned.items():
        setattr(field, attr, value)
    _check_dropdown(field)
    db.session.flush()
    return field


def delete_custom_field(field_id):
    """Remove a definition. Stored values under that name are left as-is."""
    field = get_custom_field_or_404(field_id)
    field.company.custom_fields.remove(field)
    db.session.flush()
