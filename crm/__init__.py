import os
import logging

import click
from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.security import generate_password_hash

from crm.config import config_by_name
from crm.errors import register_error_handlers
from crm.extensions import db, migrate, login_manager, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.sort_keys = False

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from crm import models  # noqa: F401

    # --- Register blueprints ---
    from crm.blueprints.auth import auth_bp
    from crm.blueprints.users import users_bp
    from crm.blueprints.leads import leads_bp
    from crm.blueprints.quotations import quotations_bp
    from crm.blueprints.reports import reports_bp
    from crm.blueprints.settings import settings_bp
    from crm.blueprints.uploads import uploads_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(quotations_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(uploads_bp)

    # --- Root route ---
    @app.route("/")
    def index():
        return jsonify({"success": True, "message": "CRM API is running"})

    # --- Local file serving (no Supabase configured) ---
    if not app.config.get("SUPABASE_URL"):
        @app.route("/uploads/<path:filepath>")
        def serve_upload(filepath):
            """Serve files stored in the local upload folder."""
            from flask import send_from_directory
            upload_dir = app.config.get("UPLOAD_FOLDER") or os.path.join(
                app.instance_path, "uploads"
            )
            return send_from_directory(upload_dir, filepath)

    # --- Error handlers ---
    register_error_handlers(app)

    # --- CLI commands ---
    register_cli(app)

    # --- CORS for the frontend ---
    CORS(
        app,
        origins=[app.config["FRONTEND_URL"]],
        supports_credentials=True,
        allow_headers=["Authorization", "Content-Type"],
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    )

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # JSON API: nothing to load, nothing to frame
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-admin")
    @click.option("--email", default="admin@crm.local", help="Admin email")
    @click.option("--password", default="admin123", help="Admin password")
    @click.option("--name", default="Admin", help="Admin display name")
    def seed_admin(email, password, name):
        """Create the admin user and the default company settings.

        Usage:
            flask seed-admin
            flask seed-admin --email admin@example.com --password s3cret
        """
        from crm.models.user import User
        from crm.services.company_service import get_or_create_company

        email = email.strip().lower()
        existing = User.query.filter_by(email=email).first()
        if existing:
            click.echo(f"User already exists: {email}")
            if existing.role != "admin":
                existing.role = "admin"
                click.echo("  Promoted to admin.")
        else:
            db.session.add(User(
                name=name,
                email=email,
                password_hash=generate_password_hash(password),
                role="admin",
            ))
            click.echo(f"Created admin user: {email}")

        company = get_or_create_company()
        db.session.commit()

        click.echo("")
        click.echo("=" * 60)
        click.echo("Seed data created successfully!")
        click.echo("=" * 60)
        click.echo(f"  Admin:    {email}")
        click.echo(f"  Company:  {company.name} (id: {company.id})")
        click.echo("=" * 60)
