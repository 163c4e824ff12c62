"""
Target schema construction.

The SchemaBuilder turns entity metadata (field definitions, declared keys
and relations) into the TableState the live table has to converge to.
"""

import logging
from typing import TYPE_CHECKING

from ..constraints import ON_DELETE, ON_UPDATE, Constraint
from ..entity_manager import EntityManager
from ..exceptions import DuplicateIndexError, UnknownFieldError
from ..fields.column import FieldDefinition, FieldIndexSet
from ..relations import Relation, ToMany, ToManyThrough, ToOne, resolve_entity
from ..types import DEFAULT_DECIMAL_PRECISION, DEFAULT_DECIMAL_SCALE, DEFAULT_STRING_LENGTH, FieldType
from .state import ColumnState, ForeignKeyState, IndexState, TableState, default_from_value

if TYPE_CHECKING:
    from ..mapper import Mapper
    from ..model_base import BaseEntity

logger = logging.getLogger(__name__)


def column_state(definition: FieldDefinition) -> ColumnState:
    """Column state of a field, with type options filled with their defaults."""
    is_string = definition.type == FieldType.STRING
    is_decimal = definition.type == FieldType.DECIMAL
    return ColumnState(
        name=definition.name,
        column_type=definition.type,
        nullable=definition.nullable,
        default=default_from_value(definition.default),
        length=(definition.length or DEFAULT_STRING_LENGTH) if is_string else None,
        precision=(definition.precision or DEFAULT_DECIMAL_PRECISION) if is_decimal else None,
        scale=(definition.scale if definition.scale is not None else DEFAULT_DECIMAL_SCALE) if is_decimal else None,
        autoincrement=definition.autoincrement,
    )


def foreign_key_name(table: str, local_key: str) -> str:
    return f"fk_{table}_{local_key}"


class SchemaBuilder:
    """
    Builds the target TableState of an entity.

    Building is pure: nothing is read from or written to the database.

    Example::

        builder = SchemaBuilder(mapper)
        target = builder.build()
        target.foreign_keys["post_id"].on_delete   # Constraint.CASCADE
    """

    def __init__(self, mapper: "Mapper"):
        self.mapper = mapper

    def build(self, entity: type["BaseEntity"] | None = None) -> TableState:
        """
        Build the target schema of an entity.

        Args:
            entity: Entity class (default: the mapper's entity)

        Raises:
            UnknownFieldError: If an index, constraint or relation names a missing field
            DuplicateIndexError: If an index name is used twice
            MissingTableError: If a relation targets something that is not an entity
            InvalidConstraintError: If a declared action is not a Constraint
            MetadataError: If a field type cannot be resolved
        """
        manager = EntityManager(entity or self.mapper.entity())
        return build_table(
            manager.table(),
            manager.fields(),
            manager.field_keys(),
            manager.relations(self.mapper),
        )


def build_table(
    table: str,
    fields: dict[str, FieldDefinition],
    keys: FieldIndexSet,
    relations: dict[str, Relation],
) -> TableState:
    """
    Assemble a TableState from already loaded entity metadata.

    Only owning (``ToOne``) relations produce foreign keys, carrying the
    actions declared for their local key and nothing else.
    """
    state = TableState(name=table)

    for definition in fields.values():
        state.add_column(column_state(definition))

    for name in keys.primary:
        _require_field(table, fields, name, "primary key")
    state.primary_key = list(keys.primary)

    for index_name, columns, unique in _declared_indexes(keys):
        if index_name in state.indexes:
            raise DuplicateIndexError(table, index_name)
        for name in columns:
            _require_field(table, fields, name, f"index '{index_name}'")
        state.add_index(IndexState(name=index_name, columns=list(columns), unique=unique))

    for clause in (ON_UPDATE, ON_DELETE):
        for name in keys.constraints.get(clause, {}):
            _require_field(table, fields, name, f"{clause} constraint")

    for relation_name, relation in relations.items():
        match relation:
            case ToMany() | ToManyThrough():
                continue
            case ToOne():
                _require_field(table, fields, relation.local_key, f"relation '{relation_name}'")
                state.add_foreign_key(_foreign_key(table, relation, keys))

    logger.debug("Built target schema %r", state)
    return state


def _declared_indexes(keys: FieldIndexSet) -> list[tuple[str, list[str], bool]]:
    declared = [(name, columns, True) for name, columns in keys.unique.items()]
    declared.extend((name, columns, False) for name, columns in keys.index.items())
    return declared


def _require_field(table: str, fields: dict[str, FieldDefinition], name: str, context: str) -> None:
    if name not in fields:
        raise UnknownFieldError(table, name, context)


def _foreign_key(table: str, relation: ToOne, keys: FieldIndexSet) -> ForeignKeyState:
    foreign_table = resolve_entity(relation.entity).get_table_name()

    on_update = keys.constraint_for(ON_UPDATE, relation.local_key)
    on_delete = keys.constraint_for(ON_DELETE, relation.local_key)

    return ForeignKeyState(
        name=foreign_key_name(table, relation.local_key),
        columns=[relation.local_key],
        referred_table=foreign_table,
        referred_columns=[relation.foreign_key],
        on_update=Constraint.parse(on_update) if on_update is not None else None,
        on_delete=Constraint.parse(on_delete) if on_delete is not None else None,
    )


__all__ = ["SchemaBuilder", "build_table", "column_state", "foreign_key_name"]
