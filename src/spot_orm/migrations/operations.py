"""
Schema operations.

Each operation represents a single structural change to one table and
renders the statements that apply it for a SQLAlchemy dialect. Column
types, identifier quoting and constraint clauses are compiled by the
dialect; only ALTER forms SQLAlchemy has no construct for are written
out here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Dialect
from sqlalchemy.schema import AddConstraint, CreateColumn, DropConstraint
from sqlalchemy.schema import CreateIndex as SACreateIndex
from sqlalchemy.schema import CreateTable as SACreateTable
from sqlalchemy.schema import DropIndex as SADropIndex

from ..exceptions import IntrospectionError
from ..types import FieldType
from .state import ColumnState, ForeignKeyState, IndexState, TableState

_NUMERIC_TYPES = {FieldType.INTEGER, FieldType.SMALLINT, FieldType.BIGINT, FieldType.FLOAT, FieldType.DECIMAL}
_SQL_KEYWORD_DEFAULTS = {"CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME"}
_MYSQL_DIALECTS = {"mysql", "mariadb"}

REBUILD_PREFIX = "__temp__"


def _quote(dialect: Dialect, name: str) -> str:
    return dialect.identifier_preparer.quote(name)


def _compile(ddl: Any, dialect: Dialect) -> str:
    return str(ddl.compile(dialect=dialect)).strip()


def _sa_type(column: ColumnState) -> sa.types.TypeEngine[Any]:
    return FieldType(column.column_type).to_sqlalchemy(column.length, column.precision, column.scale)


def default_sql(column: ColumnState, dialect: Dialect) -> str | None:
    """
    Render the server default of a column as a SQL expression.

    Returns:
        The expression text, or None when the column has no default
    """
    if column.default is None:
        return None
    if column.column_type == FieldType.BOOLEAN:
        return _compile(sa.true() if column.default == "1" else sa.false(), dialect)
    if column.default in _SQL_KEYWORD_DEFAULTS:
        return column.default
    if column.column_type in _NUMERIC_TYPES:
        try:
            Decimal(column.default)
            return column.default
        except InvalidOperation:
            pass
    literal = sa.literal(column.default, sa.String())
    return str(literal.compile(dialect=dialect, compile_kwargs={"literal_binds": True}))


def _sa_column(column: ColumnState, dialect: Dialect, primary_key: bool = False) -> sa.Column[Any]:
    server_default = default_sql(column, dialect)
    return sa.Column(
        column.name,
        _sa_type(column),
        nullable=column.nullable,
        autoincrement=column.autoincrement if primary_key else False,
        server_default=sa.text(server_default) if server_default is not None else None,
    )


def _sa_foreign_key(foreign_key: ForeignKeyState) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        foreign_key.columns,
        [f"{foreign_key.referred_table}.{column}" for column in foreign_key.referred_columns],
        name=foreign_key.name,
        onupdate=str(foreign_key.on_update) if foreign_key.on_update else None,
        ondelete=str(foreign_key.on_delete) if foreign_key.on_delete else None,
    )


def to_sa_table(
    table: TableState,
    dialect: Dialect,
    foreign_keys: list[ForeignKeyState] | None = None,
    name: str | None = None,
) -> sa.Table:
    """
    Build a SQLAlchemy ``Table`` from a table state.

    Referenced tables are stubbed in the same ``MetaData`` so foreign
    keys compile without the other tables being loaded.

    Args:
        table: Table state to convert
        dialect: Dialect used to render defaults
        foreign_keys: Foreign keys to declare (default: none)
        name: Table name override
    """
    metadata = sa.MetaData()
    table_name = name or table.name
    foreign_keys = foreign_keys or []

    for foreign_key in foreign_keys:
        referred = foreign_key.referred_table
        if referred != table_name and referred not in metadata.tables:
            sa.Table(referred, metadata, *[sa.Column(column, sa.Integer) for column in foreign_key.referred_columns])

    args: list[Any] = [
        _sa_column(column, dialect, primary_key=column.name in table.primary_key) for column in table.columns.values()
    ]
    if table.primary_key:
        args.append(sa.PrimaryKeyConstraint(*table.primary_key))
    args.extend(_sa_foreign_key(foreign_key) for foreign_key in foreign_keys)

    return sa.Table(table_name, metadata, *args)


def _same_type(column: ColumnState, other: ColumnState) -> bool:
    if column.column_type != other.column_type:
        return False
    if column.column_type == FieldType.STRING:
        return column.length == other.length
    if column.column_type == FieldType.DECIMAL:
        return column.precision == other.precision and column.scale == other.scale
    return True


@dataclass
class Operation(ABC):
    """
    Base class for all schema operations.

    Operations must implement forwards() returning the statements for
    a dialect, in execution order.
    """

    @abstractmethod
    def forwards(self, dialect: Dialect) -> list[str]:
        """Generate the statements applying this operation."""
        ...

    def describe(self) -> str:
        """Human-readable description of the operation."""
        return f"{self.__class__.__name__}"


@dataclass
class CreateTable(Operation):
    """
    Create a table with its columns and primary key.

    Example:
        CreateTable(table=TableState(name="user", ...))

    Generates:
        CREATE TABLE user (id INTEGER NOT NULL, name VARCHAR(255), PRIMARY KEY (id))
    """

    table: TableState
    include_foreign_keys: bool = True
    name: str | None = None

    def forwards(self, dialect: Dialect) -> list[str]:
        foreign_keys = list(self.table.foreign_keys.values()) if self.include_foreign_keys else []
        sa_table = to_sa_table(self.table, dialect, foreign_keys=foreign_keys, name=self.name)
        return [_compile(SACreateTable(sa_table), dialect)]

    def describe(self) -> str:
        return f"Create table {self.name or self.table.name}"


@dataclass
class AddColumn(Operation):
    """
    Add a column to an existing table.

    Generates:
        ALTER TABLE user ADD COLUMN email VARCHAR(255)
    """

    table: TableState
    column: ColumnState

    def forwards(self, dialect: Dialect) -> list[str]:
        sa_column = _sa_column(self.column, dialect)
        sa.Table(self.table.name, sa.MetaData(), sa_column)
        column_sql = _compile(CreateColumn(sa_column), dialect)
        return [f"ALTER TABLE {_quote(dialect, self.table.name)} ADD COLUMN {column_sql}"]

    def describe(self) -> str:
        return f"Add column {self.column.name} to {self.table.name}"


@dataclass
class DropColumn(Operation):
    """
    Remove a column from a table.

    Generates:
        ALTER TABLE user DROP COLUMN nickname
    """

    table: TableState
    column: ColumnState

    def forwards(self, dialect: Dialect) -> list[str]:
        return [f"ALTER TABLE {_quote(dialect, self.table.name)} DROP COLUMN {_quote(dialect, self.column.name)}"]

    def describe(self) -> str:
        return f"Drop column {self.column.name} from {self.table.name}"


@dataclass
class AlterColumn(Operation):
    """
    Change the type, nullability or default of a column.

    MySQL restates the full column with MODIFY COLUMN; other backends
    get one ALTER COLUMN statement per changed attribute.

    Generates (PostgreSQL):
        ALTER TABLE user ALTER COLUMN name TYPE VARCHAR(100)
        ALTER TABLE user ALTER COLUMN name SET NOT NULL
    """

    table: TableState
    column: ColumnState
    previous: ColumnState

    def forwards(self, dialect: Dialect) -> list[str]:
        table = _quote(dialect, self.table.name)
        if dialect.name in _MYSQL_DIALECTS:
            sa_column = _sa_column(self.column, dialect)
            sa.Table(self.table.name, sa.MetaData(), sa_column)
            return [f"ALTER TABLE {table} MODIFY COLUMN {_compile(CreateColumn(sa_column), dialect)}"]

        prefix = f"ALTER TABLE {table} ALTER COLUMN {_quote(dialect, self.column.name)}"
        statements = []
        if not _same_type(self.column, self.previous):
            statements.append(f"{prefix} TYPE {_sa_type(self.column).compile(dialect=dialect)}")
        if self.column.nullable != self.previous.nullable:
            statements.append(f"{prefix} {'DROP' if self.column.nullable else 'SET'} NOT NULL")
        if self.column.default != self.previous.default:
            expression = default_sql(self.column, dialect)
            statements.append(f"{prefix} DROP DEFAULT" if expression is None else f"{prefix} SET DEFAULT {expression}")
        return statements

    def describe(self) -> str:
        return f"Alter column {self.column.name} on {self.table.name}"


@dataclass
class CreateIndex(Operation):
    """
    Create a unique or secondary index.

    Generates:
        CREATE UNIQUE INDEX user_email_unique ON user (email)
    """

    table: TableState
    index: IndexState

    def forwards(self, dialect: Dialect) -> list[str]:
        sa_table = to_sa_table(self.table, dialect)
        sa_index = sa.Index(self.index.name, *[sa_table.c[column] for column in self.index.columns], unique=self.index.unique)
        return [_compile(SACreateIndex(sa_index), dialect)]

    def describe(self) -> str:
        return f"Create index {self.index.name} on {self.table.name}"


@dataclass
class DropIndex(Operation):
    """
    Drop an index.

    Generates:
        DROP INDEX user_email_unique
    """

    table: TableState
    index: IndexState

    def forwards(self, dialect: Dialect) -> list[str]:
        sa_table = sa.Table(
            self.table.name, sa.MetaData(), *[sa.Column(column, sa.Integer) for column in self.index.columns]
        )
        sa_index = sa.Index(self.index.name, *[sa_table.c[column] for column in self.index.columns])
        return [_compile(SADropIndex(sa_index), dialect)]

    def describe(self) -> str:
        return f"Drop index {self.index.name} on {self.table.name}"


@dataclass
class AddForeignKey(Operation):
    """
    Add a foreign key constraint to an existing table.

    Generates:
        ALTER TABLE comment ADD CONSTRAINT fk_comment_post_id FOREIGN KEY(post_id)
            REFERENCES post (id) ON DELETE CASCADE
    """

    table: TableState
    foreign_key: ForeignKeyState

    def forwards(self, dialect: Dialect) -> list[str]:
        sa_table = to_sa_table(self.table, dialect, foreign_keys=[self.foreign_key])
        (constraint,) = sa_table.foreign_key_constraints
        return [_compile(AddConstraint(constraint), dialect)]

    def describe(self) -> str:
        return f"Add foreign key {self.foreign_key.name} on {self.table.name}"


@dataclass
class DropForeignKey(Operation):
    """
    Drop a foreign key constraint by name.

    Generates:
        ALTER TABLE comment DROP CONSTRAINT fk_comment_post_id
    """

    table: TableState
    foreign_key: ForeignKeyState

    def forwards(self, dialect: Dialect) -> list[str]:
        if not self.foreign_key.name:
            raise IntrospectionError(
                f"Foreign key on {self.table.name}({self.foreign_key.key}) has no name and cannot be dropped",
                table=self.table.name,
            )
        sa_table = sa.Table(
            self.table.name, sa.MetaData(), *[sa.Column(column, sa.Integer) for column in self.foreign_key.columns]
        )
        constraint = sa.ForeignKeyConstraint(
            self.foreign_key.columns,
            [f"{self.foreign_key.referred_table}.{column}" for column in self.foreign_key.referred_columns],
            name=self.foreign_key.name,
        )
        sa_table.append_constraint(constraint)
        return [_compile(DropConstraint(constraint), dialect)]

    def describe(self) -> str:
        return f"Drop foreign key {self.foreign_key.name} on {self.table.name}"


@dataclass
class DropPrimaryKey(Operation):
    """Drop the primary key of a table."""

    table: TableState

    def forwards(self, dialect: Dialect) -> list[str]:
        table = _quote(dialect, self.table.name)
        if dialect.name in _MYSQL_DIALECTS:
            return [f"ALTER TABLE {table} DROP PRIMARY KEY"]
        name = self.table.primary_key_name or f"{self.table.name}_pkey"
        return [f"ALTER TABLE {table} DROP CONSTRAINT {_quote(dialect, name)}"]

    def describe(self) -> str:
        return f"Drop primary key on {self.table.name}"


@dataclass
class AddPrimaryKey(Operation):
    """Add a primary key over existing columns."""

    table: TableState

    def forwards(self, dialect: Dialect) -> list[str]:
        columns = ", ".join(_quote(dialect, column) for column in self.table.primary_key)
        return [f"ALTER TABLE {_quote(dialect, self.table.name)} ADD PRIMARY KEY ({columns})"]

    def describe(self) -> str:
        return f"Add primary key ({', '.join(self.table.primary_key)}) on {self.table.name}"


@dataclass
class RebuildTable(Operation):
    """
    Recreate a table with a new definition, keeping its rows.

    Used on SQLite, which cannot alter columns, primary keys or foreign
    keys in place. Shared columns are copied; indexes are re-created
    after the rename.

    Generates:
        CREATE TABLE __temp__comment (...)
        INSERT INTO __temp__comment (id, body) SELECT id, body FROM comment
        DROP TABLE comment
        ALTER TABLE __temp__comment RENAME TO comment
        CREATE INDEX ...
    """

    live: TableState
    target: TableState
    disable_foreign_keys: bool = False

    def forwards(self, dialect: Dialect) -> list[str]:
        temp_name = f"{REBUILD_PREFIX}{self.target.name}"
        table = _quote(dialect, self.live.name)
        temp = _quote(dialect, temp_name)

        statements = []
        if self.disable_foreign_keys:
            statements.append("PRAGMA foreign_keys=OFF")
        statements.extend(CreateTable(table=self.target, name=temp_name).forwards(dialect))

        shared = [column for column in self.target.columns if column in self.live.columns]
        if shared:
            columns = ", ".join(_quote(dialect, column) for column in shared)
            statements.append(f"INSERT INTO {temp} ({columns}) SELECT {columns} FROM {table}")

        statements.append(f"DROP TABLE {table}")
        statements.append(f"ALTER TABLE {temp} RENAME TO {_quote(dialect, self.target.name)}")
        for index in self.target.indexes.values():
            statements.extend(CreateIndex(table=self.target, index=index).forwards(dialect))
        if self.disable_foreign_keys:
            statements.append("PRAGMA foreign_keys=ON")
        return statements

    def describe(self) -> str:
        return f"Rebuild table {self.target.name}"


def requires_rebuild(operations: list[Operation]) -> bool:
    """
    Whether SQLite needs a table rebuild to apply these operations.

    SQLite can add nullable (or defaulted) columns and create or drop
    indexes in place; everything else needs a rebuild.
    """
    for operation in operations:
        if isinstance(operation, (CreateIndex, DropIndex)):
            continue
        if isinstance(operation, AddColumn) and (operation.column.nullable or operation.column.default is not None):
            continue
        return True
    return False
