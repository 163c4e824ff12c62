"""
Entity metadata extraction.

The :class:`EntityManager` reads an entity class and exposes the field
definitions and keys the schema builder consumes. Nothing is cached
across entity classes; one manager describes one entity.
"""

import types
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Union, get_args, get_origin, get_type_hints

from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined

from .constraints import ON_DELETE, ON_UPDATE
from .exceptions import MetadataError
from .fields.column import Column, FieldDefinition, FieldIndexSet, get_column_marker
from .types import FieldType

if TYPE_CHECKING:
    from .mapper import Mapper
    from .model_base import BaseEntity
    from .relations import Relation

_SCALAR_DEFAULTS = (str, int, float, bool, Decimal)


class EntityManager:
    """
    Describes the storage layout of a single entity class.

    Example::

        manager = EntityManager(Comment)
        manager.fields()["post_id"].type      # FieldType.INTEGER
        manager.field_keys().constraints      # {"onUpdate": {}, "onDelete": {"post_id": "CASCADE"}}
    """

    def __init__(self, entity: type["BaseEntity"]):
        self.entity = entity

    def table(self) -> str:
        return self.entity.get_table_name()

    def fields(self) -> dict[str, FieldDefinition]:
        """
        Field definitions in declaration order.

        Raises:
            MetadataError: If a field type cannot be resolved
        """
        try:
            type_hints = get_type_hints(self.entity, include_extras=True)
        except Exception:
            # Fallback if forward references cannot be resolved
            type_hints = {}

        definitions: dict[str, FieldDefinition] = {}
        for name, field_info in self.entity.model_fields.items():
            type_hint = type_hints.get(name, field_info.annotation)
            definitions[name] = self._field_definition(name, type_hint, field_info)
        return definitions

    def field_keys(self) -> FieldIndexSet:
        """
        Keys declared through field options.

        ``unique=True`` yields an index named ``<table>_<field>_unique``;
        a string names an index that may span several fields, collected in
        declaration order. ``index`` works the same with ``_index``.
        """
        table = self.table()
        keys = FieldIndexSet()

        for name, definition in self.fields().items():
            if definition.primary:
                keys.primary.append(name)

            if definition.unique:
                index_name = definition.unique if isinstance(definition.unique, str) else f"{table}_{name}_unique"
                keys.unique.setdefault(index_name, []).append(name)

            if definition.index:
                index_name = definition.index if isinstance(definition.index, str) else f"{table}_{name}_index"
                keys.index.setdefault(index_name, []).append(name)

            if definition.on_update is not None:
                keys.constraints[ON_UPDATE][name] = definition.on_update
            if definition.on_delete is not None:
                keys.constraints[ON_DELETE][name] = definition.on_delete

        return keys

    def primary_key(self) -> str | None:
        """First primary key field, if any."""
        primary = self.field_keys().primary
        return primary[0] if primary else None

    def relations(self, mapper: "Mapper") -> dict[str, "Relation"]:
        """Relations declared by the entity for the given mapper context."""
        return self.entity.relations(mapper, self.entity.blank())

    def _field_definition(self, name: str, type_hint: Any, field_info: FieldInfo) -> FieldDefinition:
        marker = self._column_marker(type_hint, field_info)
        inner_type, optional = _unwrap_optional(_strip_annotated(type_hint))

        if marker.type is not None:
            try:
                field_type = FieldType(marker.type)
            except ValueError:
                raise MetadataError(f"Unknown field type '{marker.type}' for {self.table()}.{name}") from None
        else:
            try:
                field_type = FieldType.from_python_type(get_origin(inner_type) or inner_type)
            except ValueError:
                raise MetadataError(
                    f"Cannot infer a field type for {self.table()}.{name} from {inner_type!r}; "
                    f"declare it with Column(type=...)"
                ) from None

        default = marker.default
        if default is None and field_info.default is not PydanticUndefined:
            if isinstance(field_info.default, _SCALAR_DEFAULTS):
                default = field_info.default

        return FieldDefinition(
            name=name,
            type=field_type,
            length=marker.length,
            precision=marker.precision,
            scale=marker.scale,
            required=marker.required or not optional,
            default=default,
            primary=marker.primary,
            autoincrement=marker.autoincrement,
            unique=marker.unique,
            index=marker.index,
            on_update=marker.on_update,
            on_delete=marker.on_delete,
        )

    @staticmethod
    def _column_marker(type_hint: Any, field_info: FieldInfo) -> Column:
        # Pydantic moves Annotated metadata onto the FieldInfo
        for item in field_info.metadata:
            if isinstance(item, Column):
                return item
        return get_column_marker(type_hint) or Column()


def _strip_annotated(type_hint: Any) -> Any:
    while hasattr(type_hint, "__metadata__"):
        type_hint = get_args(type_hint)[0]
    return type_hint


def _unwrap_optional(type_hint: Any) -> tuple[Any, bool]:
    """Split ``T | None`` into ``(T, True)``; other types into ``(type, False)``."""
    origin = get_origin(type_hint)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(type_hint) if arg is not type(None)]
        optional = len(args) != len(get_args(type_hint))
        if len(args) == 1:
            return _strip_annotated(args[0]), optional
        return type_hint, optional
    return type_hint, False
