# backend/shopoms/__init__.py
from __future__ import annotations

from flask import Flask, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import Config, ConfigurationError, validate_config, store_engine_options
from .extensions import db, migrate


def _probe_store(app: Flask) -> None:
    """Fail fast when the store is unreachable at start."""
    with app.app_context():
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise ConfigurationError("Store is unreachable") from exc
        finally:
            db.session.remove()


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Missing secret / store URL stops the process here, never per request
    validate_config(app.config)

    try:
        app.logger.setLevel(str(app.config["LOG_LEVEL"]).upper())
    except ValueError as exc:
        raise ConfigurationError(f"Unknown LOG_LEVEL: {app.config['LOG_LEVEL']}") from exc

    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        store_engine_options(app.config["SQLALCHEMY_DATABASE_URI"], app.config["STORE_TIMEOUT_SECONDS"]),
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.orders import orders_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(reports_bp)

    allowed_origins = set(app.config.get("CORS_ORIGINS") or ())

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    if app.config.get("STORE_PROBE_ON_START", True):
        _probe_store(app)

    app.logger.info(
        "App ready: pricing=%s reads_require_auth=%s",
        app.config["ORDER_PRICING_MODE"],
        app.config["READS_REQUIRE_AUTH"],
    )
    return app
