"""
spot-orm exceptions.

Custom exception hierarchy for schema building, introspection and
statement execution.
"""


class SpotOrmError(Exception):
    """Base exception for all spot-orm errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MetadataError(SpotOrmError):
    """Raised when field, index or relation declarations are malformed."""

    pass


class UnknownFieldError(MetadataError):
    """Raised when an index, constraint or relation references a missing field."""

    def __init__(self, table: str, field: str, context: str = "index"):
        self.table = table
        self.field = field
        super().__init__(f"Unknown field '{field}' referenced by {context} on table '{table}'")


class DuplicateIndexError(MetadataError):
    """Raised when two indexes of the same table share a name."""

    def __init__(self, table: str, index: str):
        self.table = table
        self.index = index
        super().__init__(f"Index '{index}' is declared more than once on table '{table}'")


class MissingTableError(MetadataError):
    """Raised when a relation targets an entity that has no table."""

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"Related entity '{entity}' has no configured table")


class InvalidConstraintError(MetadataError):
    """Raised for referential actions outside the constraint vocabulary."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid referential action: {value!r}")


class IntrospectionError(SpotOrmError):
    """Raised when the live schema of a table cannot be read."""

    def __init__(self, message: str, table: str | None = None):
        self.table = table
        super().__init__(message)


class StatementError(SpotOrmError):
    """Raised when a DDL or DML statement fails during execution."""

    def __init__(self, message: str, statement: str | None = None):
        self.statement = statement
        super().__init__(message)


class ConstraintViolationError(StatementError):
    """Raised when a write is rejected by a database constraint.

    Covers unique, not-null and foreign key violations reported by the
    driver as integrity errors.
    """

    pass


__all__ = [
    "SpotOrmError",
    "MetadataError",
    "UnknownFieldError",
    "DuplicateIndexError",
    "MissingTableError",
    "InvalidConstraintError",
    "IntrospectionError",
    "StatementError",
    "ConstraintViolationError",
]
