# backend/arcadepos/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.pcs import pcs_bp
    from .routes.gaming import gaming_bp
    from .routes.sales import sales_bp
    from .routes.discounts import discounts_bp
    from .routes.exchange_rate import exchange_rate_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(pcs_bp)
    app.register_blueprint(gaming_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(discounts_bp)
    app.register_blueprint(exchange_rate_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
