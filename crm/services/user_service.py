"""User service - profile, settings and security preferences.

Functions flush but do NOT commit; the caller commits.
"""

import logging

from crm import policy
from crm.errors import NotFoundError, ValidationError
from crm.extensions import db
from crm.models.user import DEFAULT_SECURITY, DEFAULT_SETTINGS, User
from crm.services import storage_service
from crm.services.inputs import choice, clean_email, sanitize

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {
    "name": "name",
    "position": "position",
    "phone": "phone",
    "bio": "bio",
    "avatar": "avatar",
}


def get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_users():
    return User.query.order_by(User.name).all()


def update_user(user, data, actor):
    """Apply profile fields. Role and active flag changes need user:change_role."""
    for key, column in PROFILE_FIELDS.items():
        if key in data:
            value = sanitize(data[key]) or ""
            if key == "name" and not value:
                raise ValidationError("'name' cannot be empty")
            setattr(user, column, value)

    if "email" in data:
        email = clean_email(data["email"])
        if email != user.email and User.query.filter_by(email=email).first():
            raise ValidationError("User with this email already exists")
        user.email = email

    if "role" in data and data["role"] != user.role:
        policy.authorize(actor.role, actor.id, "user:change_role")
        user.role = choice(data["role"], policy.ROLES, "role")
        logger.info("Role of %s changed to %s by %s", user.id, user.role, actor.id)

    if "isActive" in data and bool(data["isActive"]) != bool(user.is_active):
        policy.authorize(actor.role, actor.id, "user:change_role")
        user.is_active = bool(data["isActive"])

    db.session.flush()
    return user


def _merge_preferences(current, defaults, data, label):
    if not isinstance(data, dict):
        raise ValidationError(f"{label} must be an object")
    unknown = sorted(set(data) - set(defaults))
    if unknown:
        raise ValidationError(f"Unknown {label} key(s): {', '.join(unknown)}")
    for key, value in data.items():
        if type(value) is not type(defaults[key]):
            raise ValidationError(
                f"'{key}' must be of type {type(defaults[key]).__name__}"
            )
    return {**defaults, **(current or {}), **data}


def update_settings(user, data):
    user.settings = _merge_preferences(user.settings, DEFAULT_SETTINGS, data, "settings")
    db.session.flush()
    return user.settings


def update_security(user, data):
    user.security = _merge_preferences(user.security, DEFAULT_SECURITY, data, "security")
    db.session.flush()
    return user.security


def login_history(user):
    return [event.to_dict() for event in user.login_events.all()]


def delete_user(user):
    """Delete the account. Returns the stored avatar path to clean up, if any."""
    avatar_path = storage_service.storage_path_from_url(user.avatar)
    db.session.delete(user)
    db.session.flush()
    return avatar_path
