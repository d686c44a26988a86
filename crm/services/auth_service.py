"""Auth service - registration, login, bearer tokens, password flows.

Tokens are HS256 JWTs signed with JWT_SECRET carrying the user id and
role; they expire after JWT_EXPIRES_DAYS. There is no server-side session:
logout is a client-side concern.

Functions flush but do NOT commit; the caller commits.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

from crm import policy
from crm.errors import AuthenticationError, NotFoundError, ValidationError
from crm.extensions import db
from crm.models.user import LoginEvent, User
from crm.services import email_service
from crm.services.inputs import as_utc, clean_email, require, sanitize

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def issue_token(user):
    now = datetime.now(timezone.utc)
    payload = {
        "id": user.id,
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(days=current_app.config["JWT_EXPIRES_DAYS"]),
    }
    return jwt.encode(payload, current_app.config["JWT_SECRET"], algorithm="HS256")


def user_from_token(token):
    """Active user for a valid token, else None."""
    if not token:
        return None
    try:
        payload = jwt.decode(
            token, current_app.config["JWT_SECRET"], algorithms=["HS256"]
        )
    except jwt.InvalidTokenError:
        return None
    user = db.session.get(User, payload.get("id"))
    return user if user and user.is_active else None


def check_password(password):
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    return password


def register(data):
    """Create an account. The very first account becomes the admin."""
    require(data, "name", "email", "password")
    email = clean_email(data.get("email"))
    password = check_password(data.get("password"))

    if User.query.filter_by(email=email).first():
        raise ValidationError("User with this email already exists")

    role = policy.ADMIN if User.query.count() == 0 else policy.EMPLOYEE
    user = User(
        name=sanitize(data.get("name")),
        email=email,
        password_hash=generate_password_hash(password),
        role=role,
    )
    db.session.add(user)
    db.session.flush()
    logger.info("Registered user %s as %s", email, role)
    return user


def _record_login(user, user_agent, ip):
    limit = current_app.config["LOGIN_HISTORY_LIMIT"]
    db.session.add(LoginEvent(
        user_id=user.id,
        device=(user_agent or "Unknown")[:500],
        browser=(user_agent or "Unknown")[:500],
        ip=ip or "Unknown",
        location="Unknown",
    ))
    db.session.flush()

    stale = user.login_events.offset(limit).all()
    for event in stale:
        db.session.delete(event)
    db.session.flush()


def login(email, password, user_agent=None, ip=None):
    """Verify credentials and record the login. Returns (user, token)."""
    email = (email or "").strip().lower()
    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, password or ""):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Account is disabled")

    _record_login(user, user_agent, ip)
    return user, issue_token(user)


def change_password(user, current_password, new_password):
    if not check_password_hash(user.password_hash, current_password or ""):
        raise AuthenticationError("Current password is incorrect")
    user.password_hash = generate_password_hash(check_password(new_password))
    user.password_last_changed = datetime.now(timezone.utc)
    db.session.flush()


def forgot_password(email):
    """Issue a one-time reset token and mail the reset link.

    Returns the token so callers (and tests) can act on it.
    """
    email = (email or "").strip().lower()
    user = User.query.filter_by(email=email).first()
    if not user:
        raise NotFoundError("User not found")

    token = secrets.token_urlsafe(32)
    user.password_reset_token = token
    user.password_reset_expires = datetime.now(timezone.utc) + timedelta(
        hours=current_app.config["PASSWORD_RESET_HOURS"]
    )
    db.session.flush()

    reset_url = f"{current_app.config['FRONTEND_URL'].rstrip('/')}/reset-password?token={token}"
    email_service.send_email(
        to=user.email,
        subject="Password reset",
        template="emails/password_reset.html",
        context={"name": user.name, "reset_url": reset_url},
    )
    return token


def reset_password(token, password):
    user = User.query.filter_by(password_reset_token=token).first() if token else None
    expires = as_utc(user.password_reset_expires) if user else None
    if not user or not expires or expires < datetime.now(timezone.utc):
        raise ValidationError("Invalid or expired reset token")

    user.password_hash = generate_password_hash(check_password(password))
    user.password_last_changed = datetime.now(timezone.utc)
    user.password_reset_token = None
    user.password_reset_expires = None
    db.session.flush()
    return user
