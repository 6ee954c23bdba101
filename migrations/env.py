# migrations/env.py
from __future__ import annotations

import os
import sys
import logging
from logging.config import fileConfig

from alembic import context

# -----------------------------------------------------------------------------
# Ensure project root is on sys.path so "import app" works everywhere
# This file lives at: <project_root>/migrations/env.py
# -----------------------------------------------------------------------------
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

config = context.config

if config.config_file_name:
    try:
        fileConfig(config.config_file_name, disable_existing_loggers=False)
    except KeyError:
        # alembic.ini without logging sections
        pass

logger = logging.getLogger("alembic.env")

# -----------------------------------------------------------------------------
# URL + metadata resolution
#
# - If DATABASE_URL is set: run without a Flask app context (CI / deploy).
# - Otherwise: `flask db ...` (Flask-Migrate) provides the engine and metadata.
# -----------------------------------------------------------------------------
DB_URL = os.getenv("DATABASE_URL")

USING_FLASK_MIGRATE = False
target_db = None
current_app = None


def _normalize(url: str) -> str:
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


def _set_sqlalchemy_url(url: str) -> None:
    """Set sqlalchemy.url in alembic config, escaping % for ConfigParser."""
    if not url:
        return
    config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))


def _import_app_db_metadata():
    from app.extensions import db  # runtime import is intentional
    import app.models  # noqa: F401  registers tables on db.metadata

    return db.metadata


def _bootstrap_flask_migrate():
    global USING_FLASK_MIGRATE, target_db, current_app  # noqa: PLW0603

    from flask import current_app as flask_current_app  # runtime import

    current_app = flask_current_app
    USING_FLASK_MIGRATE = True
    target_db = current_app.extensions["migrate"].db

    def get_engine():
        return current_app.extensions["migrate"].db.engine

    def get_engine_url():
        return get_engine().url.render_as_string(hide_password=False).replace("%", "%%")

    return get_engine, get_engine_url


if DB_URL:
    _set_sqlalchemy_url(_normalize(DB_URL))
    get_engine = None
else:
    get_engine, get_engine_url = _bootstrap_flask_migrate()
    config.set_main_option("sqlalchemy.url", get_engine_url())


def get_metadata():
    if not USING_FLASK_MIGRATE:
        return _import_app_db_metadata()
    return target_db.metadata


def process_revision_directives(ctx, revision, directives):
    """Skip empty autogenerate revisions."""
    cmd_opts = getattr(config, "cmd_opts", None)
    if cmd_opts and getattr(cmd_opts, "autogenerate", False):
        script = directives[0]
        if script.upgrade_ops.is_empty():
            directives[:] = []
            logger.info("No changes in schema detected.")


def run_migrations_offline():
    url = config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("No sqlalchemy.url configured. Set DATABASE_URL or run via `flask db`.")

    context.configure(
        url=url,
        target_metadata=get_metadata(),
        literal_binds=True,
        compare_type=True,
        process_revision_directives=process_revision_directives,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    if USING_FLASK_MIGRATE:
        conf_args = current_app.extensions["migrate"].configure_args or {}
        conf_args.setdefault("process_revision_directives", process_revision_directives)
        conf_args.setdefault("compare_type", True)

        with get_engine().connect() as connection:
            context.configure(connection=connection, target_metadata=get_metadata(), **conf_args)
            with context.begin_transaction():
                context.run_migrations()
        return

    from sqlalchemy import create_engine  # runtime import is intentional

    engine = create_engine(config.get_main_option("sqlalchemy.url"))
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=get_metadata(),
            process_revision_directives=process_revision_directives,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
