# backend/furnstock/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before init_app: Flask-SQLAlchemy binds the engine URI there
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Bundled accounting: party ledger rows in the same database
    from .services.accounting_service import LedgerAccountingSink, install_accounting_sink
    install_accounting_sink(app, LedgerAccountingSink())

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
