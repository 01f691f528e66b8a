"""Explicit store handle: one engine per batch run, opened and closed by the caller."""
from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from orbitops.catalog.models import Base
from orbitops.errors import CatalogUnavailable

logger = logging.getLogger(__name__)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite issues its own BEGIN lazily, which breaks SAVEPOINT; take over.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class CatalogStore:
    """Keyed store backing the object and conjunction catalogs.

    Usage::

        with CatalogStore("sqlite:///orbitops.db") as store:
            with store.transaction() as session:
                ...
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: Engine | None = None
        self._sessionmaker: sessionmaker[Session] | None = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def open(self) -> CatalogStore:
        """Connect and make sure the schema exists.

        Raises:
            CatalogUnavailable: If the database cannot be reached.
        """
        if self._engine is not None:
            return self
        engine = create_engine(self.url, echo=self.echo)
        if engine.dialect.name == "sqlite":
            _enable_sqlite_savepoints(engine)
        try:
            Base.metadata.create_all(engine)
        except (OperationalError, InterfaceError) as e:
            engine.dispose()
            logger.error("Catalog store %s unavailable: %s", self.url, e)
            raise CatalogUnavailable(f"cannot open catalog store {self.url}: {e}") from e

        self._engine = engine
        self._sessionmaker = sessionmaker(bind=engine, expire_on_commit=False)
        logger.debug("Catalog store %s opened", self.url)
        return self

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            logger.debug("Catalog store %s closed", self.url)
        self._engine = None
        self._sessionmaker = None

    def __enter__(self) -> CatalogStore:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session whose work commits on success and rolls back on any error.

        Raises:
            CatalogUnavailable: If the store is closed or the database fails.
        """
        if self._sessionmaker is None:
            raise CatalogUnavailable("catalog store is not open")

        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except (OperationalError, InterfaceError) as e:
            session.rollback()
            logger.error("Catalog store %s failed: %s", self.url, e)
            raise CatalogUnavailable(f"catalog store {self.url} failed: {e}") from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()
