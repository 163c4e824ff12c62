"""
spot-orm schema reconciliation.

This module builds the target schema of an entity, reads the live schema
of its table and computes the operations converging one to the other:
- Target schema from field definitions, keys and owning relations
- Live schema through the SQLAlchemy inspector
- Ordered, dialect-rendered DDL operations

Usage:
    target = SchemaBuilder(mapper).build()
    live = DatabaseIntrospector(sa_connection).introspect_table(target.name)
    for operation in live.diff(target):
        print(operation.forwards(engine.dialect))
"""

from .builder import SchemaBuilder, build_table
from .introspector import DatabaseIntrospector
from .operations import (
    AddColumn,
    AddForeignKey,
    AddPrimaryKey,
    AlterColumn,
    CreateIndex,
    CreateTable,
    DropColumn,
    DropForeignKey,
    DropIndex,
    DropPrimaryKey,
    Operation,
    RebuildTable,
    requires_rebuild,
)
from .state import ColumnState, ForeignKeyState, IndexState, TableState

__all__ = [
    # Schema
    "SchemaBuilder",
    "build_table",
    "DatabaseIntrospector",
    "TableState",
    "ColumnState",
    "IndexState",
    "ForeignKeyState",
    # Operations
    "Operation",
    "CreateTable",
    "AddColumn",
    "AlterColumn",
    "DropColumn",
    "CreateIndex",
    "DropIndex",
    "AddForeignKey",
    "DropForeignKey",
    "AddPrimaryKey",
    "DropPrimaryKey",
    "RebuildTable",
    "requires_rebuild",
]
