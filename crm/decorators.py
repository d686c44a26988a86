"""
Custom route decorators for access control.

- role_required: ensures the caller is authenticated AND that the access
  policy allows `operation` for their role. Only for operations whose
  answer depends on role alone (deletes, user listing, company writes).
  Routes that depend on record ownership load the record first and call
  policy.authorize() with its owner.
"""

from functools import wraps

from flask_login import current_user, login_required

from crm import policy


def role_required(operation):
    """Require login + a role the policy allows for `operation`."""

    def decorator(f):
        @wraps(f)
        @login_required
        def decorated(*args, **kwargs):
            policy.authorize(current_user.role, current_user.id, operation)
            return f(*args, **kwargs)

        return decorated

    return decorator
