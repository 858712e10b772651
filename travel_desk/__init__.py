"""
Travel Desk
Flask Application Factory.

Usage:
    from travel_desk import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from travel_desk.config import config
from travel_desk.models import db
from travel_desk.middleware.logging_config import configure_logging
from travel_desk.middleware.jwt_auth import init_jwt_middleware
from travel_desk.middleware.rate_limiter import init_rate_limits
from travel_desk.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, applied per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── JWT auth middleware (sets g.actor) ───────────────────────────────
    init_jwt_middleware(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from travel_desk.models import application as _application_models  # noqa: F401
    from travel_desk.models import decision as _decision_models        # noqa: F401
    from travel_desk.models import email_log as _email_log_models      # noqa: F401
    from travel_desk.models import settings as _settings_models        # noqa: F401

    # ── Blueprints ───────────────────────────────────────────────────────
    from travel_desk.blueprints.admin_bp import admin_bp
    from travel_desk.blueprints.application_bp import application_bp
    from travel_desk.blueprints.health_bp import health_bp
    from travel_desk.blueprints.minister_bp import minister_bp
    from travel_desk.blueprints.reviewer_bp import reviewer_bp

    app.register_blueprint(application_bp)
    app.register_blueprint(reviewer_bp)
    app.register_blueprint(minister_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("init-settings")
    def init_settings_cmd():
        """Create or heal the stored settings document."""
        from travel_desk.services.settings_service import get_settings
        settings = get_settings()
        click.echo(f"Settings ready: {len(settings['email']['templates'])} email templates.")

    @app.cli.command("issue-token")
    @click.argument("user_id")
    @click.option("--role", "roles", multiple=True, default=["USER"], help="Repeatable.")
    @click.option("--email", default="")
    @click.option("--first-name", default="")
    @click.option("--last-name", default="")
    def issue_token_cmd(user_id, roles, email, first_name, last_name):
        """Print an access token for local testing."""
        from travel_desk.services.jwt_service import generate_access_token
        click.echo(generate_access_token(
            user_id, [r.upper() for r in roles],
            email=email, first_name=first_name, last_name=last_name,
        ))

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
