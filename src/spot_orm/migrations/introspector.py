"""
Live schema introspection.

This module reads the structure of an existing table through the
SQLAlchemy inspector and normalizes it into a TableState comparable with
the one built from entity metadata.
"""

import logging
from typing import Any

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from ..constraints import Constraint
from ..exceptions import IntrospectionError, InvalidConstraintError
from ..types import FieldType
from .state import ColumnState, ForeignKeyState, IndexState, TableState, default_from_sql

logger = logging.getLogger(__name__)

# Most specific first: Float is a Numeric, Text a String, BigInteger an Integer
_REFLECTED_TYPES: list[tuple[type[sa.types.TypeEngine[Any]], FieldType]] = [
    (sa.Boolean, FieldType.BOOLEAN),
    (sa.BigInteger, FieldType.BIGINT),
    (sa.SmallInteger, FieldType.SMALLINT),
    (sa.Integer, FieldType.INTEGER),
    (sa.Float, FieldType.FLOAT),
    (sa.Numeric, FieldType.DECIMAL),
    (sa.Text, FieldType.TEXT),
    (sa.String, FieldType.STRING),
    (sa.DateTime, FieldType.DATETIME),
    (sa.Date, FieldType.DATE),
    (sa.Time, FieldType.TIME),
    (sa.LargeBinary, FieldType.BINARY),
    (sa.JSON, FieldType.JSON),
]


def normalize_type(column_type: sa.types.TypeEngine[Any]) -> str:
    """
    Map a reflected SQLAlchemy type to a field type tag.

    Types outside the vocabulary keep their SQLAlchemy visit name so that
    they compare unequal to any declared type.
    """
    # MySQL has no boolean type; Boolean is stored as TINYINT(1)
    if type(column_type).__name__ == "TINYINT" and getattr(column_type, "display_width", None) == 1:
        return FieldType.BOOLEAN
    for reflected, field_type in _REFLECTED_TYPES:
        if isinstance(column_type, reflected):
            return field_type
    return getattr(column_type, "__visit_name__", type(column_type).__name__).lower()


class DatabaseIntrospector:
    """
    Reads live table structure from a database connection.

    Example::

        with engine.connect() as conn:
            live = DatabaseIntrospector(conn).introspect_table("comment")
            live.exists                     # False when the table is absent
            live.foreign_keys["post_id"]    # ForeignKeyState(...)
    """

    def __init__(self, connection: sa.Connection):
        self.connection = connection

    def introspect_table(self, name: str) -> TableState:
        """
        Build the live TableState of a table.

        Returns:
            The table state; it has no columns when the table does not exist

        Raises:
            IntrospectionError: If the database cannot be queried
        """
        try:
            inspector = sa.inspect(self.connection)
            if not inspector.has_table(name):
                logger.debug("Table %s does not exist", name)
                return TableState(name=name)

            columns = inspector.get_columns(name)
            primary_key = inspector.get_pk_constraint(name)
            indexes = inspector.get_indexes(name)
            foreign_keys = inspector.get_foreign_keys(name)
        except SQLAlchemyError as exc:
            raise IntrospectionError(f"Cannot read the schema of table '{name}': {exc}", table=name) from exc

        state = TableState(
            name=name,
            primary_key=list(primary_key.get("constrained_columns") or []),
            primary_key_name=primary_key.get("name"),
        )
        for column in columns:
            state.add_column(self._column_state(column))

        for foreign_key in foreign_keys:
            state.add_foreign_key(self._foreign_key_state(name, foreign_key))

        foreign_key_names = {fk.name for fk in state.foreign_keys.values() if fk.name}
        for index in indexes:
            # Indexes backing a constraint are not managed as indexes; MySQL
            # also creates one per foreign key, named after the constraint
            if index.get("duplicates_constraint") or index["name"] is None or index["name"] in foreign_key_names:
                continue
            state.add_index(
                IndexState(
                    name=index["name"],
                    columns=[column for column in index["column_names"] if column is not None],
                    unique=bool(index.get("unique")),
                )
            )

        logger.debug("Introspected %r", state)
        return state

    @staticmethod
    def _column_state(column: dict[str, Any]) -> ColumnState:
        column_type = column["type"]
        field_type = normalize_type(column_type)
        return ColumnState(
            name=column["name"],
            column_type=field_type,
            nullable=bool(column.get("nullable", True)),
            default=default_from_sql(column.get("default")),
            length=getattr(column_type, "length", None) if field_type == FieldType.STRING else None,
            precision=getattr(column_type, "precision", None) if field_type == FieldType.DECIMAL else None,
            scale=getattr(column_type, "scale", None) if field_type == FieldType.DECIMAL else None,
            autoincrement=column.get("autoincrement") is True,
        )

    @staticmethod
    def _foreign_key_state(table: str, foreign_key: dict[str, Any]) -> ForeignKeyState:
        options = foreign_key.get("options") or {}
        try:
            on_update = _reported_action(options.get("onupdate"))
            on_delete = _reported_action(options.get("ondelete"))
        except InvalidConstraintError as exc:
            raise IntrospectionError(f"Unsupported referential action on table '{table}': {exc}", table=table) from exc
        return ForeignKeyState(
            name=foreign_key.get("name"),
            columns=list(foreign_key["constrained_columns"]),
            referred_table=foreign_key["referred_table"],
            referred_columns=list(foreign_key["referred_columns"]),
            on_update=on_update,
            on_delete=on_delete,
        )


def _reported_action(value: str | None) -> Constraint | None:
    """Referential action as reported by the database, in whatever case it was written."""
    if not value:
        return None
    return Constraint.parse(" ".join(value.upper().split()))


__all__ = ["DatabaseIntrospector", "normalize_type"]
