"""
Type definitions for spot-orm.

This module contains the enums shared by the entity layer, the schema
builder and the connection collaborator: storage field types, backend
families and relation kinds.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import StrEnum
from typing import Any

import sqlalchemy as sa


class FieldType(StrEnum):
    """
    Storage types usable in entity field definitions.

    Each member maps to a portable SQLAlchemy type so that DDL is rendered
    by the dialect of the connection in use.

    Numeric Types:
        - INTEGER, SMALLINT, BIGINT: signed integers
        - FLOAT: double precision floating point
        - DECIMAL: fixed precision (``precision``/``scale`` options)

    Character Types:
        - STRING: bounded text (``length`` option, default 255)
        - TEXT: unbounded text

    Other Types:
        - BOOLEAN, DATE, TIME, DATETIME, BINARY, JSON
    """

    INTEGER = "integer"
    SMALLINT = "smallint"
    BIGINT = "bigint"
    FLOAT = "float"
    DECIMAL = "decimal"
    STRING = "string"
    TEXT = "text"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    BINARY = "binary"
    JSON = "json"

    def to_sqlalchemy(
        self,
        length: int | None = None,
        precision: int | None = None,
        scale: int | None = None,
    ) -> sa.types.TypeEngine[Any]:
        """
        Build the SQLAlchemy type for this field type.

        Args:
            length: Maximum length for STRING fields
            precision: Total digits for DECIMAL fields
            scale: Fractional digits for DECIMAL fields

        Returns:
            A SQLAlchemy ``TypeEngine`` instance
        """
        if self is FieldType.STRING:
            return sa.String(length or DEFAULT_STRING_LENGTH)
        if self is FieldType.DECIMAL:
            return sa.Numeric(precision or DEFAULT_DECIMAL_PRECISION, scale if scale is not None else DEFAULT_DECIMAL_SCALE)
        return _SIMPLE_TYPES[self]()

    @classmethod
    def from_python_type(cls, python_type: type) -> "FieldType":
        """
        Map a Python type to a FieldType.

        Args:
            python_type: A Python type (int, str, bool, float, Decimal, ...)

        Returns:
            The corresponding FieldType

        Raises:
            ValueError: If the type cannot be mapped
        """
        # bool is a subclass of int, datetime of date: order matters
        for candidate, field_type in PYTHON_TO_FIELD_TYPE:
            if isinstance(python_type, type) and issubclass(python_type, candidate):
                return field_type
        raise ValueError(f"Cannot map Python type {python_type} to a FieldType")


class BackendFamily(StrEnum):
    """
    Database backend families that change statement text.

    - SQLITE: no TRUNCATE, no ALTER of columns or constraints
    - POSTGRES: TRUNCATE ... CASCADE supported
    - OTHER: any other SQLAlchemy dialect
    """

    SQLITE = "sqlite"
    POSTGRES = "postgres"
    OTHER = "other"

    @classmethod
    def from_dialect_name(cls, name: str) -> "BackendFamily":
        """Classify a SQLAlchemy dialect name (``engine.dialect.name``)."""
        if name == "sqlite":
            return cls.SQLITE
        if name in ("postgresql", "postgres"):
            return cls.POSTGRES
        return cls.OTHER


class RelationKind(StrEnum):
    """
    Relation variants between two entity types.

    - TO_ONE: owning side, stores the foreign key column on this table
    - TO_MANY: inverse side, the related table stores the key
    - TO_MANY_THROUGH: inverse side, mediated by a join table
    """

    TO_ONE = "to_one"
    TO_MANY = "to_many"
    TO_MANY_THROUGH = "to_many_through"


DEFAULT_STRING_LENGTH = 255
DEFAULT_DECIMAL_PRECISION = 10
DEFAULT_DECIMAL_SCALE = 0

_SIMPLE_TYPES: dict[FieldType, type[sa.types.TypeEngine[Any]]] = {
    FieldType.INTEGER: sa.Integer,
    FieldType.SMALLINT: sa.SmallInteger,
    FieldType.BIGINT: sa.BigInteger,
    FieldType.FLOAT: sa.Float,
    FieldType.TEXT: sa.Text,
    FieldType.BOOLEAN: sa.Boolean,
    FieldType.DATE: sa.Date,
    FieldType.TIME: sa.Time,
    FieldType.DATETIME: sa.DateTime,
    FieldType.BINARY: sa.LargeBinary,
    FieldType.JSON: sa.JSON,
}

PYTHON_TO_FIELD_TYPE: list[tuple[type, FieldType]] = [
    (bool, FieldType.BOOLEAN),
    (int, FieldType.INTEGER),
    (float, FieldType.FLOAT),
    (Decimal, FieldType.DECIMAL),
    (str, FieldType.STRING),
    (datetime, FieldType.DATETIME),
    (date, FieldType.DATE),
    (time, FieldType.TIME),
    (bytes, FieldType.BINARY),
    (dict, FieldType.JSON),
    (list, FieldType.JSON),
]
