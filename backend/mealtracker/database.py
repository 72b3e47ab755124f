"""
MealTracker Backend - Embedded Database Engine Wrapper
=======================================================

What:  Owns one in-process SQLite engine bound to an in-memory image and exposes
       query/execute primitives over it.
How:   SQLAlchemy engine on "sqlite://" with StaticPool (exactly one DBAPI
       connection for the life of the wrapper) in AUTOCOMMIT mode, so every call
       is its own transaction. Raw SQL with positional "?" placeholders goes
       through Connection.exec_driver_sql().
Who:   Created and owned exclusively by storage.manager.DurableStore.
When:  Once per process, when the store first materializes its image.

This module never persists anything. The image only leaves memory through
export_image(), which DurableStore calls after each mutation.

Connection Model:
    StaticPool + one long-lived Connection means:
    - the in-memory database survives between calls (a new connection would
      open a new, empty database)
    - SELECT last_insert_rowid() always refers to the statement just executed
    - PRAGMA foreign_keys, a per-connection flag, stays set
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from mealtracker.exceptions import CorruptImageError, IntegrityViolationError, QueryError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for the table declarations in mealtracker.models.

    The models are used for schema definition only (see mealtracker.schema);
    rows are read and written through raw SQL on EmbeddedDatabase.
    """
    pass


@dataclass(frozen=True)
class StatementResult:
    """Outcome of a mutating statement on the engine."""

    inserted_row_id: int
    rows_affected: int


def _enable_foreign_keys_on_connect(dbapi_connection, connection_record) -> None:
    # SQLite ships with foreign key enforcement off for every new connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


class EmbeddedDatabase:
    """
    Uniform query/execute interface over an in-memory SQLite image.

    Usage:
        db = EmbeddedDatabase()                    # empty image
        db = EmbeddedDatabase.from_image(blob)     # image from cache/remote
        rows = list(db.query("SELECT * FROM meals WHERE section_id = ?", [3]))
        result = db.execute("INSERT INTO restaurants (name) VALUES (?)", ["Cafe X"])
        blob = db.export_image()

    No transaction or batch API: every call is independently autocommitted.
    """

    def __init__(self, echo: bool = False):
        self.engine: Engine = create_engine(
            "sqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            isolation_level="AUTOCOMMIT",
            echo=echo,
        )
        event.listen(self.engine, "connect", _enable_foreign_keys_on_connect)
        self._connection: Optional[Connection] = self.engine.connect()

    @classmethod
    def from_image(cls, image: bytes, echo: bool = False) -> "EmbeddedDatabase":
        """
        Build a wrapper whose in-memory database is a copy of `image`.

        Raises:
            CorruptImageError: The blob is empty or is not a SQLite database.
        """
        if not image:
            raise CorruptImageError(message="Database image is empty")

        database = cls(echo=echo)
        try:
            database._driver_connection().deserialize(image)
            # deserialize() accepts any bytes; the header is only checked on first read.
            database.connection.exec_driver_sql("SELECT count(*) FROM sqlite_master").scalar()
        except (sqlite3.Error, SQLAlchemyError) as e:
            database.close()
            raise CorruptImageError(
                context={"size": len(image), "error": str(e)},
            ) from e

        database.enable_foreign_keys()
        return database

    # ── Connection access ─────────────────────────────────────────────────

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise QueryError(message="Database has been closed")
        return self._connection

    def _driver_connection(self) -> sqlite3.Connection:
        return self.connection.connection.driver_connection

    # ── Read path ─────────────────────────────────────────────────────────

    def query(
        self, statement: str, parameters: Sequence[Any] = ()
    ) -> Iterator[Dict[str, Any]]:
        """
        Run a statement and return its rows as column -> value dicts.

        The statement executes immediately (so errors surface here); rows are
        produced lazily from the open cursor. Call again to re-run it.

        Runs under PRAGMA query_only: writes must go through execute() so
        that they are persisted.

        Raises:
            QueryError: Malformed statement, wrong number of parameters, more
                        than one statement in `statement`, or a statement
                        that tries to modify the database.
        """
        connection = self.connection
        connection.exec_driver_sql("PRAGMA query_only = ON")
        try:
            result = connection.exec_driver_sql(statement, tuple(parameters))
        except SQLAlchemyError as e:
            orig = getattr(e, "orig", None)
            if getattr(orig, "sqlite_errorcode", None) == sqlite3.SQLITE_READONLY:
                raise QueryError(
                    message="query() is read-only; use execute() to modify data",
                    statement=statement,
                ) from e
            raise self._translate(e, statement) from e
        finally:
            connection.exec_driver_sql("PRAGMA query_only = OFF")

        if not result.returns_rows:
            result.close()
            return iter(())
        return self._iter_rows(result, statement)

    def _iter_rows(self, result: CursorResult, statement: str) -> Iterator[Dict[str, Any]]:
        try:
            for row in result.mappings():
                yield dict(row)
        except SQLAlchemyError as e:
            raise self._translate(e, statement) from e
        finally:
            result.close()

    # ── Write path ────────────────────────────────────────────────────────

    def execute(self, statement: str, parameters: Sequence[Any] = ()) -> StatementResult:
        """
        Run a mutating statement and report the last inserted row id.

        The id comes from a follow-up SELECT last_insert_rowid() on the same
        connection: the new primary key right after an INSERT, otherwise the
        id of the most recent insert on this connection (0 if there was none).

        Raises:
            IntegrityViolationError: A declared constraint rejected the change.
            QueryError: Any other engine error.
        """
        try:
            result = self.connection.exec_driver_sql(statement, tuple(parameters))
            rows_affected = result.rowcount
            result.close()
            inserted_row_id = self.connection.exec_driver_sql(
                "SELECT last_insert_rowid()"
            ).scalar()
        except SQLAlchemyError as e:
            raise self._translate(e, statement) from e

        return StatementResult(
            inserted_row_id=int(inserted_row_id or 0),
            rows_affected=max(rows_affected or 0, 0),
        )

    # ── Image and pragmas ─────────────────────────────────────────────────

    def export_image(self) -> bytes:
        """Serialize the whole in-memory database into a single blob."""
        return bytes(self._driver_connection().serialize())

    def enable_foreign_keys(self) -> None:
        self.connection.exec_driver_sql("PRAGMA foreign_keys = ON")

    def foreign_keys_enabled(self) -> bool:
        return self.connection.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1

    def table_names(self) -> List[str]:
        rows = self.query(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row["name"] for row in rows]

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        self.engine.dispose()

    @staticmethod
    def _translate(error: SQLAlchemyError, statement: str) -> QueryError:
        detail = str(getattr(error, "orig", None) or error)
        logger.debug("Statement failed: %s | %s", detail, " ".join(statement.split()))
        if isinstance(error, IntegrityError):
            return IntegrityViolationError(
                message=f"Constraint violated: {detail}",
                statement=statement,
            )
        return QueryError(message=f"Query failed: {detail}", statement=statement)
