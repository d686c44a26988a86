"""Custom field values - typed mapping validated against company definitions.

Leads and quotations carry `customFields`: {field name -> value}. Each key
must match a CustomField defined on the company for that entity, and each
value must fit the field's type:

    text      -> str
    number    -> int | float (bool rejected)
    date      -> ISO date/datetime string, stored normalized (isoformat)
    dropdown  -> one of the field's options
    checkbox  -> bool

None clears a value. Required fields must be present with a non-empty
value on create.
"""

from dateutil import parser as dtparse

from crm.errors import ValidationError
from crm.services.company_service import get_or_create_company


def _coerce(field, value):
    name = field.name
    kind = field.field_type

    if kind == "text":
        if not isinstance(value, str):
            raise ValidationError(f"Custom field '{name}' must be text")
        return value.strip()

    if kind == "number":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"Custom field '{name}' must be a number")
        return value

    if kind == "date":
        if not isinstance(value, str):
            raise ValidationError(f"Custom field '{name}' must be a date string")
        try:
            parsed = dtparse.isoparse(value)
        except ValueError:
            raise ValidationError(f"Custom field '{name}' must be an ISO date") from None
        return parsed.isoformat()

    if kind == "checkbox":
        if not isinstance(value, bool):
            raise ValidationError(f"Custom field '{name}' must be true or false")
        return value

    if kind == "dropdown":
        options = field.options or []
        if value not in options:
            raise ValidationError(
                f"Custom field '{name}' must be one of: {', '.join(map(str, options))}"
            )
        return value

    raise ValidationError(f"Custom field '{name}' has unknown type '{kind}'")


def definitions_for(entity):
    company = get_or_create_company()
    return {f.name: f for f in company.custom_fields if f.entity == entity}


def validate_values(entity, values, existing=None):
    """Validate `values` for `entity` and return the merged mapping.

    `existing` is the record's current mapping (None on create). Keys set
    to None are removed.
    """
    if values is None:
        values = {}
    if not isinstance(values, dict):
        raise ValidationError("customFields must be an object")

    definitions = definitions_for(entity)
    unknown = sorted(set(values) - set(definitions))
    if unknown:
        raise ValidationError(f"Unknown custom field(s): {', '.join(unknown)}")

    merged = dict(existing or {})
    for name, value in values.items():
        if value is None:
            merged.pop(name, None)
        else:
            merged[name] = _coerce(definitions[name], value)

    missing = [
        name for name, field in definitions.items()
        if field.required and merged.get(name) in (None, "")
    ]
    if missing:
        raise ValidationError(f"Missing required custom field(s): {', '.join(sorted(missing))}")

    return merged
