# app/services/storage.py
"""
Storage client and unit of work.

Storage is built once by the application factory from the Flask-SQLAlchemy
engine and handed to the transition engine and the query layer. Business code
never touches the global ``db.session``: every mutating operation runs inside
its own UnitOfWork, which owns exactly one Session (one pooled connection) for
its lifetime.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.errors import InternalError, MarketplaceError

logger = logging.getLogger(__name__)


# =========================================================
# SQLite transaction control
# =========================================================
def _sqlite_disable_driver_begin(dbapi_connection, connection_record) -> None:
    # pysqlite otherwise delays BEGIN until the first write.
    dbapi_connection.isolation_level = None


def _sqlite_begin_immediate(conn) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def serialize_sqlite_transactions(engine: Engine) -> None:
    """
    SQLite ignores SELECT ... FOR UPDATE. Take the database write lock when
    each transaction begins instead, so a unit of work reads its
    preconditions and writes its effects with no other writer in between.
    """
    if engine.dialect.name != "sqlite":
        return
    event.listen(engine, "connect", _sqlite_disable_driver_begin)
    event.listen(engine, "begin", _sqlite_begin_immediate)


class UnitOfWork:
    """
    Scoped transaction. Commits on a clean exit and rolls back when the block
    raises. The session is closed on both paths.

        with storage.unit_of_work("Accept offer") as uow:
            offer = uow.session.get(Offer, offer_id)
            ...
    """

    def __init__(self, session_factory: sessionmaker, action: str):
        self._session_factory = session_factory
        self.action = action
        self.session: Session | None = None
        self._after_commit: list = []

    def after_commit(self, callback) -> None:
        """Run ``callback()`` only once the transaction has committed."""
        self._after_commit.append(callback)

    def __enter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self.session.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        session = self.session
        try:
            if exc is None:
                try:
                    session.commit()
                except SQLAlchemyError:
                    session.rollback()
                    logger.exception("%s failed on commit", self.action)
                    raise InternalError()
            else:
                session.rollback()
                if isinstance(exc, SQLAlchemyError):
                    logger.exception("%s failed", self.action)
                    raise InternalError() from exc
                if isinstance(exc, MarketplaceError):
                    logger.info("%s rejected: %s", self.action, exc.message)
        finally:
            session.close()
            self.session = None

        if exc is None:
            for callback in self._after_commit:
                callback()
        return False


class Storage:
    def __init__(self, engine: Engine):
        self.engine = engine
        serialize_sqlite_transactions(engine)
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False, autobegin=False)

    def unit_of_work(self, action: str) -> UnitOfWork:
        return UnitOfWork(self._session_factory, action)

    @contextmanager
    def read_session(self) -> Iterator[Session]:
        """Short-lived session for read-only projections."""
        session = self._session_factory()
        try:
            with session.begin():
                yield session
        finally:
            session.close()

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("Database health check failed")
            return False

    def dispose(self) -> None:
        self.engine.dispose()
