"""
Database connection for spot-orm.

``Connection`` wraps a SQLAlchemy ``Engine`` and one lazily opened
SQLAlchemy connection. It is the only place statements reach the
driver: schema reads, dialect rendering of schema operations, statement
execution with error translation, and the explicit transaction scope.

Every statement is committed as soon as it runs, except inside
:meth:`Connection.transactional`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Self, TypeVar

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.engine import CursorResult, Dialect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.schema import DropTable

from .connection_config import ConnectionConfig
from .debug import _elapsed_ms, _log_query, _start_timer
from .exceptions import ConstraintViolationError, IntrospectionError, StatementError
from .migrations.introspector import DatabaseIntrospector
from .migrations.operations import RebuildTable, requires_rebuild
from .migrations.state import TableState
from .types import BackendFamily

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    """Turn on foreign key enforcement for a new SQLite connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Connection:
    """
    Database connection used by mappers and resolvers.

    Example::

        with Connection.from_url("sqlite://") as connection:
            connection.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
            connection.insert("t", {"id": 1})
            connection.backend_family()     # BackendFamily.SQLITE
    """

    def __init__(self, engine: sa.Engine, sqlite_foreign_keys: bool = True, owns_engine: bool = False):
        self.engine = engine
        self.sqlite_foreign_keys = sqlite_foreign_keys
        self._owns_engine = owns_engine
        self._connection: sa.Connection | None = None
        self._in_transaction = False

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> Connection:
        """
        Create an engine from a configuration and wrap it.

        SQLite engines get a ``connect`` listener enabling foreign keys
        when ``config.sqlite_foreign_keys`` is set.
        """
        engine = sa.create_engine(config.url, echo=config.echo, pool_pre_ping=config.pool_pre_ping)
        sqlite_foreign_keys = engine.dialect.name == "sqlite" and config.sqlite_foreign_keys
        if sqlite_foreign_keys:
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return cls(engine, sqlite_foreign_keys=sqlite_foreign_keys, owns_engine=True)

    @classmethod
    def from_url(cls, url: str, **options: Any) -> Connection:
        return cls.from_config(ConnectionConfig(url=url, **options))

    @property
    def dialect(self) -> Dialect:
        return self.engine.dialect

    def backend_family(self) -> BackendFamily:
        return BackendFamily.from_dialect_name(self.dialect.name)

    def raw(self) -> sa.Connection:
        """The underlying SQLAlchemy connection, opened on first use."""
        if self._connection is None or self._connection.closed:
            self._connection = self.engine.connect()
        return self._connection

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def introspect_table(self, name: str) -> TableState:
        """
        Read the live schema of a table.

        Raises:
            IntrospectionError: If the schema cannot be read
        """
        try:
            connection = self.raw()
        except SQLAlchemyError as exc:
            raise IntrospectionError(f"Cannot connect to read table {name}: {exc}", table=name) from exc
        try:
            return DatabaseIntrospector(connection).introspect_table(name)
        finally:
            self.release()

    def render_create(self, target: TableState) -> list[str]:
        """Statements creating ``target`` from nothing, for this dialect."""
        inline = self.backend_family() is BackendFamily.SQLITE
        operations = target.create_operations(inline_foreign_keys=inline)
        return [sql for operation in operations for sql in operation.forwards(self.dialect)]

    def render_diff(self, live: TableState, target: TableState) -> list[str]:
        """
        Statements converging ``live`` to ``target``, for this dialect.

        On SQLite, changes it cannot apply in place are folded into a
        single table rebuild.
        """
        if not live.exists:
            return self.render_create(target)

        operations = live.diff(target)
        if not operations:
            return []
        if self.backend_family() is BackendFamily.SQLITE and requires_rebuild(operations):
            logger.debug("Rebuilding table %s to apply %d operations", target.name, len(operations))
            operations = [RebuildTable(live=live, target=target, disable_foreign_keys=self.sqlite_foreign_keys)]
        return [sql for operation in operations for sql in operation.forwards(self.dialect)]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, statement: str | sa.Executable, params: Mapping[str, Any] | None = None) -> CursorResult[Any]:
        """
        Execute a statement.

        Plain strings are sent to the driver verbatim, or as a ``text()``
        construct when ``params`` are given. Statements that do not return
        rows are committed immediately unless a transaction is open.

        Raises:
            ConstraintViolationError: If the database rejects a write
            StatementError: For any other driver error
        """
        sql = statement if isinstance(statement, str) else str(statement)
        start = _start_timer()
        failed = True
        try:
            if not isinstance(statement, str):
                sql = str(statement.compile(dialect=self.dialect))
            logger.debug("Executing: %s", sql)
            connection = self.raw()
            if isinstance(statement, str) and not params:
                result = connection.exec_driver_sql(statement, execution_options={"no_parameters": True})
            elif isinstance(statement, str):
                result = connection.execute(sa.text(statement), dict(params or {}))
            else:
                result = connection.execute(statement, dict(params) if params else None)
            failed = False
        except IntegrityError as exc:
            self._abort()
            raise ConstraintViolationError(f"Constraint violation: {exc.orig}", statement=sql) from exc
        except SQLAlchemyError as exc:
            self._abort()
            raise StatementError(f"Statement failed: {exc}", statement=sql) from exc
        finally:
            _log_query(sql, dict(params or {}), _elapsed_ms(start), failed)

        if not result.returns_rows:
            self.release()
        return result

    def release(self, result: CursorResult[Any] | None = None) -> None:
        """
        Close a result and end the implicit transaction it ran in.

        Does nothing to the transaction while :meth:`transactional` is active.
        """
        if result is not None:
            result.close()
        if self._connection is not None and not self._in_transaction and self._connection.in_transaction():
            self._connection.commit()

    def _abort(self) -> None:
        if self._connection is not None and not self._in_transaction and self._connection.in_transaction():
            self._connection.rollback()

    def transactional(self, fn: Callable[[Connection], T]) -> T:
        """
        Run ``fn`` inside a transaction.

        Commits when ``fn`` returns and rolls back when it raises; the
        exception is re-raised. Nested calls join the outer transaction.

        Raises:
            StatementError: If the transaction cannot be opened or committed
        """
        if self._in_transaction:
            return fn(self)

        try:
            connection = self.raw()
            if connection.in_transaction():
                connection.commit()
            transaction = connection.begin()
        except SQLAlchemyError as exc:
            raise StatementError(f"Cannot begin transaction: {exc}") from exc

        with transaction:
            self._in_transaction = True
            try:
                logger.debug("Transaction started")
                return fn(self)
            finally:
                self._in_transaction = False

    # ------------------------------------------------------------------
    # Row and table primitives
    # ------------------------------------------------------------------

    def insert(self, table: str, data: Mapping[str, Any]) -> int:
        """Insert one row; returns the affected row count."""
        statement = sa.insert(_table(table, data)).values(**data)
        return self.execute(statement).rowcount

    def insert_returning(self, table: str, data: Mapping[str, Any], column: str) -> Any:
        """Insert one row and return the value of ``column`` generated for it."""
        statement = sa.insert(_table(table, [*data, column])).values(**data)
        if self.dialect.insert_returning:
            result = self.execute(statement.returning(sa.column(column)))
            try:
                return result.scalar_one()
            finally:
                self.release(result)
        return self.execute(statement).lastrowid

    def update(self, table: str, data: Mapping[str, Any], where: Mapping[str, Any]) -> int:
        """Update rows matching all ``where`` equalities; returns the affected row count."""
        sa_table = _table(table, [*data, *where])
        statement = sa.update(sa_table).values(**data)
        for name, value in where.items():
            statement = statement.where(sa_table.c[name] == value)
        return self.execute(statement).rowcount

    def drop_table(self, name: str) -> bool:
        """
        Drop a table.

        Raises:
            StatementError: If the table does not exist or cannot be dropped
        """
        self.execute(DropTable(sa.Table(name, sa.MetaData())))
        return True

    def close(self) -> None:
        """Close the SQLAlchemy connection, and the engine when created here."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._owns_engine:
            self.engine.dispose()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Connection({self.engine.url!r})"


def _table(name: str, columns: Any) -> sa.TableClause:
    return sa.table(name, *[sa.column(column) for column in dict.fromkeys(columns)])


__all__ = ["Connection"]
