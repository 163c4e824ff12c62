from .collection import Collection
from .connection import Connection
from .connection_config import ConnectionConfig
from .constraints import Constraint
from .entity_manager import EntityManager
from .exceptions import (
    ConstraintViolationError,
    DuplicateIndexError,
    IntrospectionError,
    InvalidConstraintError,
    MetadataError,
    MissingTableError,
    SpotOrmError,
    StatementError,
    UnknownFieldError,
)
from .fields import Column
from .locator import Locator
from .mapper import Mapper
from .model_base import BaseEntity, EntityConfigDict
from .query import Query
from .relations import ToMany, ToManyThrough, ToOne
from .resolver import Resolver
from .types import BackendFamily, FieldType

__all__ = [
    "BaseEntity",
    "EntityConfigDict",
    "Column",
    "FieldType",
    "Constraint",
    "ToOne",
    "ToMany",
    "ToManyThrough",
    "EntityManager",
    "Connection",
    "ConnectionConfig",
    "BackendFamily",
    "Mapper",
    "Locator",
    "Query",
    "Collection",
    "Resolver",
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
