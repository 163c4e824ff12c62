"""
Query resolver.

The Resolver is the single place statements for one mapper's table are
run: schema migration (build target, read live, diff, apply), row writes,
reads handed to the collection, and the truncate and drop table
operations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from sqlalchemy.engine import CursorResult

from .exceptions import StatementError
from .migrations.builder import SchemaBuilder
from .migrations.state import TableState
from .types import BackendFamily

if TYPE_CHECKING:
    from .collection import Collection
    from .connection import Connection
    from .mapper import Mapper
    from .query import Query

logger = logging.getLogger(__name__)


class Resolver:
    """
    Resolves schema and row operations of a mapper against its connection.

    Example::

        resolver = mapper.resolver()
        resolver.migrate_sql()      # ['CREATE TABLE post (...)']
        resolver.migrate()          # True
        resolver.truncate("post")
    """

    def __init__(self, mapper: Mapper[Any]):
        self.mapper = mapper

    @property
    def connection(self) -> Connection:
        return self.mapper.connection

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def build_target_schema(self) -> TableState:
        """
        Target schema of the mapper's entity.

        Raises:
            MetadataError: If fields, keys or relations are malformed
        """
        return SchemaBuilder(self.mapper).build()

    migrate_create_schema = build_target_schema

    def reconcile(self) -> list[str]:
        """
        Statements converging the live table to the target schema.

        The target is built before the database is read, so malformed
        metadata fails without touching the connection. Nothing is
        executed.

        Raises:
            MetadataError: If the target schema cannot be built
            IntrospectionError: If the live table cannot be read
        """
        target = self.build_target_schema()
        live = self.connection.introspect_table(target.name)
        statements = self.connection.render_diff(live, target)
        if statements:
            action = "alter" if live.exists else "create"
            logger.info("Table %s: %d statement(s) to %s", target.name, len(statements), action)
        else:
            logger.debug("Table %s is up to date", target.name)
        return statements

    def migrate_sql(self) -> list[str]:
        """The statements :meth:`migrate` would run, without running them."""
        return self.reconcile()

    def migrate(self) -> bool:
        """
        Converge the entity's table to its declared schema.

        Statements run in order and each is committed; a failing statement
        stops the migration without undoing the ones before it.

        Returns:
            True when there was nothing to do or the last statement succeeded

        Raises:
            MetadataError, IntrospectionError: Before anything is executed
            StatementError: When a statement fails
        """
        statements = self.reconcile()
        if not statements:
            return True
        self.apply(statements)
        logger.info("Migrated table %s (%d statements)", self.mapper.table(), len(statements))
        return True

    def apply(self, statements: Iterable[str]) -> CursorResult[Any] | None:
        """
        Execute statements strictly in order.

        Returns:
            Result of the last statement, or None when there were none

        Raises:
            StatementError: At the first failing statement; earlier ones stay applied
        """
        result = None
        for statement in statements:
            try:
                result = self.connection.execute(statement)
            except StatementError:
                logger.error("Statement failed on table %s: %s", self.mapper.table(), statement)
                raise
        return result

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def create(self, table: str, data: dict[str, Any]) -> int:
        """
        Insert one row.

        Raises:
            ConstraintViolationError: If a constraint rejects the row
        """
        return self.connection.insert(table, data)

    def create_returning(self, table: str, data: dict[str, Any], column: str) -> Any:
        """
        Insert one row and return the value the database generated for ``column``.

        Raises:
            ConstraintViolationError: If a constraint rejects the row
        """
        return self.connection.insert_returning(table, data, column)

    def update(self, table: str, data: dict[str, Any], where: dict[str, Any]) -> int:
        """Update rows matching ``where``; zero matched rows is not an error."""
        return self.connection.update(table, data, where)

    def exec(self, query: Query) -> CursorResult[Any] | int:
        """
        Execute a built query.

        Returns:
            The open result for row-returning statements (close it with
            ``connection.release(result)``), else the affected row count
        """
        result = self.connection.execute(query.builder())
        if result.returns_rows:
            return result
        return result.rowcount

    def read(self, query: Query) -> Collection[Any]:
        """
        Execute a query and wrap its rows in a collection.

        The result is closed once rows are fetched, also when building
        the collection fails.
        """
        result = self.connection.execute(query.builder())
        try:
            rows = [dict(row) for row in result.mappings()]
            return query.mapper().collection(rows, query.with_relations)
        finally:
            self.connection.release(result)

    # ------------------------------------------------------------------
    # Table lifecycle
    # ------------------------------------------------------------------

    def truncate_statement(self, table: str, cascade: bool = False) -> str:
        """Statement emptying ``table`` on the connection's backend."""
        quoted = self.connection.dialect.identifier_preparer.quote(table)
        match self.connection.backend_family():
            case BackendFamily.SQLITE:
                # No TRUNCATE in SQLite
                return f"DELETE FROM {quoted}"
            case BackendFamily.POSTGRES:
                return f"TRUNCATE TABLE {quoted}" + (" CASCADE" if cascade else "")
            case _:
                return f"TRUNCATE TABLE {quoted}"

    def truncate(self, table: str, cascade: bool = False) -> int:
        """
        Remove all rows of a table inside a transaction.

        ``cascade`` also truncates referencing tables on PostgreSQL and is
        ignored elsewhere.

        Raises:
            StatementError: After rolling back, when the statement fails
        """
        statement = self.truncate_statement(table, cascade)
        return self.connection.transactional(lambda connection: connection.execute(statement).rowcount)

    def drop_table(self, table: str) -> bool:
        """
        Drop a table.

        Never raises: a missing table and any other failure both give False.
        """
        try:
            return self.connection.drop_table(table)
        except StatementError as exc:
            logger.warning("Could not drop table %s: %s", table, exc)
            return False


__all__ = ["Resolver"]
