"""Request body helpers shared by the services.

Free text is sanitized with bleach.clean() to strip HTML tags.
"""

import re
from datetime import timezone

import bleach
from dateutil import parser as dtparse
from flask import request

from crm.errors import ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    if not isinstance(text, str):
        raise ValidationError("Expected a text value")
    return bleach.clean(text, tags=[], strip=True).strip()


def require(data, *fields):
    missing = [f for f in fields if not str(data.get(f) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def clean_email(value):
    email = (value or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email")
    return email


def choice(value, allowed, label):
    if value not in allowed:
        raise ValidationError(
            f"Invalid {label} '{value}'. Must be one of: {', '.join(allowed)}"
        )
    return value


def parse_datetime(value, label):
    """ISO date/datetime string -> aware UTC datetime. None passes through."""
    if value is None or value == "":
        return None
    try:
        parsed = dtparse.isoparse(str(value).strip())
    except ValueError:
        raise ValidationError(f"'{label}' must be an ISO date") from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def as_utc(value):
    """SQLite hands back naive datetimes; Postgres returns aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def json_body():
    """The request's JSON object body; an empty dict when there is none."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
