# app/__init__.py
from __future__ import annotations

import logging

from flask import Flask

from .settings import Config
from .extensions import db, migrate, login_manager, limiter


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(level)
    logging.getLogger("app").setLevel(level)


def create_app(config_object=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    _configure_logging(app)

    # ======================
    # Initialize Extensions
    # ======================
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # ======================
    # Import Models + identity loaders (CRITICAL)
    # ======================
    from . import models  # noqa: F401
    from .utils import auth  # noqa: F401

    # ======================
    # Storage client + engine (owned by the app, not by business code)
    # ======================
    from .services import MarketplaceQueries, Storage, TransitionEngine
    from .services.notifications import NotificationSink

    with app.app_context():
        storage = Storage(db.engine)

    app.extensions["storage"] = storage
    app.extensions["transitions"] = TransitionEngine(storage, NotificationSink(storage))
    app.extensions["queries"] = MarketplaceQueries(storage)

    # ======================
    # Register Blueprints
    # ======================
    from .routes import main
    from .service_requests import service_requests
    from .offers import offers

    app.register_blueprint(main)
    app.register_blueprint(service_requests)
    app.register_blueprint(offers)

    # ======================
    # Error handlers + CLI
    # ======================
    from .errors import register_error_handlers
    from .cli import register_cli

    register_error_handlers(app)
    register_cli(app)

    app.logger.info("Marketplace API initialised (db=%s)", storage.engine.url.render_as_string(hide_password=True))
    return app
