"""Error taxonomy and the single JSON responder.

Every handler failure is one of the CRMError subclasses below (or an
unexpected exception), and all of them funnel into the handlers registered
by register_error_handlers(), which render a uniform body:

    {"success": false, "message": "..."}

Failures of secondary effects (PDF, storage, cascades, email) never reach
the responder; see services.side_effects.
"""

import logging
import traceback

from flask import jsonify
from werkzeug.exceptions import HTTPException

from crm.extensions import db

logger = logging.getLogger(__name__)


class CRMError(Exception):
    """Base class for errors that map to an HTTP status code."""

    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CRMError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(CRMError):
    status_code = 401
    default_message = "Not authorized to access this route"


class AuthorizationError(CRMError):
    """Access-policy denial.

    Carries what was required versus what the actor had. The message never
    contains data from the denied resource.
    """

    status_code = 403
    default_message = "Not authorized to perform this action"

    def __init__(self, message=None, operation=None, required_roles=None,
                 actual_role=None, owner_id=None, actor_id=None):
        super().__init__(message)
        self.operation = operation
        self.required_roles = tuple(required_roles or ())
        self.actual_role = actual_role
        self.owner_id = owner_id
        self.actor_id = actor_id


class NotFoundError(CRMError):
    status_code = 404
    default_message = "Resource not found"


class SecondaryEffectFailure(CRMError):
    """A side effect failed after the primary write committed."""

    status_code = 500
    default_message = "Secondary effect failed"


def _error_body(message, status_code):
    return jsonify({"success": False, "message": message}), status_code


def register_error_handlers(app):
    """Map every error kind to a status code and the uniform JSON body."""

    @app.errorhandler(CRMError)
    def handle_crm_error(e):
        db.session.rollback()
        if isinstance(e, AuthorizationError):
            logger.info(
                "Denied %s for role=%s actor=%s",
                e.operation, e.actual_role, e.actor_id,
            )
        return _error_body(e.message, e.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return _error_body(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error: %s", e)
        db.session.rollback()
        body = {"success": False, "message": "Internal Server Error"}
        # Stack traces only in development.
        if app.debug:
            body["stack"] = traceback.format_exc()
        return jsonify(body), 500
