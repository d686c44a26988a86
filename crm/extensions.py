"""
Deferred extension instances.

Created here, bound to the app in create_app() via init_app().
Flask-Login resolves the caller from the bearer token on every request;
there are no cookie sessions.
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # No global limit; limits are per-route
    storage_uri="memory://",
)


@login_manager.request_loader
def load_user_from_request(request):
    """Resolve the actor from an `Authorization: Bearer <jwt>` header."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None

    from crm.services.auth_service import user_from_token

    return user_from_token(auth_header[7:].strip())


@login_manager.unauthorized_handler
def unauthorized():
    from crm.errors import AuthenticationError

    raise AuthenticationError()
