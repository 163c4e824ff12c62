"""
Schema state tracking and diffing.

This module provides classes to represent the structure of one table,
either derived from entity metadata (target) or read from the database
(live), and computes the operations that transform one into the other.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from ..constraints import Constraint
from ..types import FieldType

if TYPE_CHECKING:
    from .operations import Operation

_QUOTED_LITERAL_RE = re.compile(r"^'((?:[^']|'')*)'(?:::.+)?$")
_CAST_SUFFIX_RE = re.compile(r"::[\w\s\"\[\]]+$")
_TIMESTAMP_KEYWORDS = {"current_timestamp", "now()", "current_timestamp()", "localtimestamp"}
_SQL_KEYWORD_DEFAULTS = {"CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME"}


def default_from_value(value: Any) -> str | None:
    """
    Normalize a declared default value to its comparable text form.

    Booleans become ``"1"``/``"0"``, numbers their decimal text, SQL
    date keywords are upper-cased, anything else is kept as text.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    text = str(value)
    if text.upper() in _SQL_KEYWORD_DEFAULTS:
        return text.upper()
    return text


def default_from_sql(expression: str | None) -> str | None:
    """
    Normalize a reflected ``DEFAULT`` expression to the same text form.

    Handles quoted literals (``'abc'``), PostgreSQL casts
    (``'abc'::character varying``), wrapping parentheses, boolean words
    and sequence defaults, which are treated as no default.
    """
    if expression is None:
        return None
    text = expression.strip()
    while text.startswith("(") and text.endswith(")"):
        text = text[1:-1].strip()

    literal = _QUOTED_LITERAL_RE.match(text)
    if literal:
        return literal.group(1).replace("''", "'")

    text = _CAST_SUFFIX_RE.sub("", text).strip()
    lowered = text.lower()
    if lowered.startswith("nextval("):
        return None
    if lowered in ("true", "false"):
        return "1" if lowered == "true" else "0"
    if lowered in _TIMESTAMP_KEYWORDS:
        return "CURRENT_TIMESTAMP"
    if text.upper() in _SQL_KEYWORD_DEFAULTS:
        return text.upper()
    return text


@dataclass
class ColumnState:
    """
    Represents the state of a single column.

    Attributes:
        name: Column name
        column_type: Normalized field type tag (``FieldType`` value, or the
            raw type name for database types outside the vocabulary)
        nullable: Whether the column accepts NULL
        default: Normalized default text (see ``default_from_value``)
        length: Maximum length, compared for string columns only
        precision: Total digits, compared for decimal columns only
        scale: Fractional digits, compared for decimal columns only
        autoincrement: Database-generated values; not compared, since
            backends report it inconsistently
    """

    name: str
    column_type: str
    nullable: bool = True
    default: str | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    autoincrement: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnState):
            return False
        if (
            self.name != other.name
            or self.column_type != other.column_type
            or self.nullable != other.nullable
            or self.default != other.default
        ):
            return False
        if self.column_type == FieldType.STRING:
            return self.length == other.length
        if self.column_type == FieldType.DECIMAL:
            return self.precision == other.precision and self.scale == other.scale
        return True

    def has_changed(self, other: "ColumnState") -> bool:
        """Check if column definition has changed from other."""
        return self != other


@dataclass
class IndexState:
    """
    Represents the state of an index on a table.

    Attributes:
        name: Index name
        columns: Column names in index order
        unique: Whether the index enforces uniqueness
    """

    name: str
    columns: list[str]
    unique: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndexState):
            return False
        return self.name == other.name and self.columns == other.columns and self.unique == other.unique


@dataclass
class ForeignKeyState:
    """
    Represents a foreign key constraint.

    Only explicitly declared actions are carried; ``None`` leaves the
    database default in place. ``NO ACTION`` is that default, so it
    compares equal to ``None``.

    Attributes:
        name: Constraint name (may be None for unnamed live constraints)
        columns: Local column names
        referred_table: Referenced table
        referred_columns: Referenced column names
        on_update: ``ON UPDATE`` action if declared
        on_delete: ``ON DELETE`` action if declared
    """

    name: str | None
    columns: list[str]
    referred_table: str
    referred_columns: list[str]
    on_update: Constraint | None = None
    on_delete: Constraint | None = None

    @property
    def key(self) -> str:
        """Identity of the foreign key within its table: the local columns."""
        return ",".join(self.columns)

    @staticmethod
    def _effective(action: Constraint | None) -> Constraint | None:
        return None if action is None or action.is_default else action

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ForeignKeyState):
            return False
        return (
            self.columns == other.columns
            and self.referred_table == other.referred_table
            and self.referred_columns == other.referred_columns
            and self._effective(self.on_update) == self._effective(other.on_update)
            and self._effective(self.on_delete) == self._effective(other.on_delete)
        )


@dataclass
class TableState:
    """
    Represents the complete state of a table.

    A table with no columns does not exist.

    Attributes:
        name: Table name
        columns: Dict of column name to ColumnState, in column order
        primary_key: Primary key column names (may be empty)
        primary_key_name: Name of the live primary key constraint, if known
        indexes: Dict of index name to IndexState
        foreign_keys: Dict of ``ForeignKeyState.key`` to ForeignKeyState
    """

    name: str
    columns: dict[str, ColumnState] = field(default_factory=dict)
    primary_key: list[str] = field(default_factory=list)
    primary_key_name: str | None = None
    indexes: dict[str, IndexState] = field(default_factory=dict)
    foreign_keys: dict[str, ForeignKeyState] = field(default_factory=dict)

    @property
    def exists(self) -> bool:
        return bool(self.columns)

    def add_column(self, column: ColumnState) -> None:
        self.columns[column.name] = column

    def add_index(self, index: IndexState) -> None:
        self.indexes[index.name] = index

    def add_foreign_key(self, foreign_key: ForeignKeyState) -> None:
        self.foreign_keys[foreign_key.key] = foreign_key

    def create_operations(self, inline_foreign_keys: bool) -> list["Operation"]:
        """
        Operations creating this table from nothing.

        Args:
            inline_foreign_keys: Declare foreign keys inside CREATE TABLE
                instead of deferring them to ALTER TABLE statements

        Returns:
            CreateTable, then CreateIndex per index, then deferred
            AddForeignKey per foreign key
        """
        from .operations import AddForeignKey, CreateIndex, CreateTable

        operations: list[Operation] = [CreateTable(table=self, include_foreign_keys=inline_foreign_keys)]
        for index in self.indexes.values():
            operations.append(CreateIndex(table=self, index=index))
        if not inline_foreign_keys:
            for foreign_key in self.foreign_keys.values():
                operations.append(AddForeignKey(table=self, foreign_key=foreign_key))
        return operations

    def diff(self, target: "TableState") -> list["Operation"]:
        """
        Compute operations needed to transform this (live) table into target.

        Ordering: drop foreign keys, drop indexes, drop primary key, add
        columns, alter columns, drop columns, add primary key, create
        indexes, add foreign keys. Changed indexes and foreign keys are
        dropped and re-created.

        Args:
            target: The desired table state

        Returns:
            List of operations to apply; empty when both states match
        """
        from .operations import (
            AddColumn,
            AddForeignKey,
            AddPrimaryKey,
            AlterColumn,
            CreateIndex,
            DropColumn,
            DropForeignKey,
            DropIndex,
            DropPrimaryKey,
        )

        if not self.exists:
            return target.create_operations(inline_foreign_keys=True)

        drop_foreign_keys: list[Operation] = []
        add_foreign_keys: list[Operation] = []
        for key, foreign_key in self.foreign_keys.items():
            if key not in target.foreign_keys or target.foreign_keys[key] != foreign_key:
                drop_foreign_keys.append(DropForeignKey(table=self, foreign_key=foreign_key))
        for key, foreign_key in target.foreign_keys.items():
            if key not in self.foreign_keys or self.foreign_keys[key] != foreign_key:
                add_foreign_keys.append(AddForeignKey(table=target, foreign_key=foreign_key))

        drop_indexes: list[Operation] = []
        create_indexes: list[Operation] = []
        for name, index in self.indexes.items():
            if name not in target.indexes or target.indexes[name] != index:
                drop_indexes.append(DropIndex(table=self, index=index))
        for name, index in target.indexes.items():
            if name not in self.indexes or self.indexes[name] != index:
                create_indexes.append(CreateIndex(table=target, index=index))

        add_columns: list[Operation] = []
        alter_columns: list[Operation] = []
        drop_columns: list[Operation] = []
        for name, column in target.columns.items():
            if name not in self.columns:
                add_columns.append(AddColumn(table=target, column=column))
            elif self.columns[name].has_changed(column):
                alter_columns.append(AlterColumn(table=target, column=column, previous=self.columns[name]))
        for name, column in self.columns.items():
            if name not in target.columns:
                drop_columns.append(DropColumn(table=self, column=column))

        drop_primary_key: list[Operation] = []
        add_primary_key: list[Operation] = []
        if self.primary_key != target.primary_key:
            if self.primary_key:
                drop_primary_key.append(DropPrimaryKey(table=self))
            if target.primary_key:
                add_primary_key.append(AddPrimaryKey(table=target))

        return (
            drop_foreign_keys
            + drop_indexes
            + drop_primary_key
            + add_columns
            + alter_columns
            + drop_columns
            + add_primary_key
            + create_indexes
            + add_foreign_keys
        )

    def __repr__(self) -> str:
        return (
            f"TableState(name={self.name!r}, columns={list(self.columns)}, primary_key={self.primary_key}, "
            f"indexes={list(self.indexes)}, foreign_keys={list(self.foreign_keys)})"
        )
