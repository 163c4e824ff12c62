"""
Column options for entity fields.

Entity fields are plain Pydantic annotations. Storage options that the
annotation alone cannot express (length, indexes, referential actions)
are attached with a :class:`Column` marker inside ``Annotated``:

    class Comment(BaseEntity):
        id: Annotated[int, Column(primary=True, autoincrement=True)]
        post_id: Annotated[int, Column(required=True, index=True, on_delete="CASCADE")]
        body: Annotated[str, Column(type="text")]

The marker is ignored by Pydantic validation and read back by the
:class:`~spot_orm.entity_manager.EntityManager`.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, get_args, get_origin

from ..constraints import ON_DELETE, ON_UPDATE, Constraint
from ..types import FieldType


@dataclass(frozen=True)
class Column:
    """
    Marker carrying storage options for one entity field.

    Attributes:
        type: Storage type; inferred from the annotation when omitted
        length: Maximum length of STRING columns
        precision: Total digits of DECIMAL columns
        scale: Fractional digits of DECIMAL columns
        required: NOT NULL when True
        default: Server-side default value
        primary: Part of the primary key
        autoincrement: Database-generated integer key
        unique: True for a single-column unique index, or an index name
            shared with other fields for a composite unique index
        index: Same as ``unique`` for non-unique indexes
        on_update: Referential action when this field is a relation key
        on_delete: Referential action when this field is a relation key
    """

    type: FieldType | str | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    required: bool = False
    default: Any = None
    primary: bool = False
    autoincrement: bool = False
    unique: bool | str = False
    index: bool | str = False
    on_update: Constraint | str | None = None
    on_delete: Constraint | str | None = None


@dataclass(frozen=True)
class FieldDefinition:
    """
    Resolved definition of one entity field.

    Immutable once loaded; the type is already validated against
    :class:`FieldType`, referential actions are kept verbatim and
    validated by the schema builder.
    """

    name: str
    type: FieldType
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    required: bool = False
    default: Any = None
    primary: bool = False
    autoincrement: bool = False
    unique: bool | str = False
    index: bool | str = False
    on_update: Constraint | str | None = None
    on_delete: Constraint | str | None = None

    @property
    def nullable(self) -> bool:
        return not (self.required or self.primary)


@dataclass
class FieldIndexSet:
    """
    Keys declared by an entity.

    Attributes:
        primary: Field names forming the primary key (may be empty)
        unique: Unique index name to field names
        index: Secondary index name to field names
        constraints: ``{"onUpdate": {field: action}, "onDelete": {field: action}}``
    """

    primary: list[str] = field(default_factory=list)
    unique: dict[str, list[str]] = field(default_factory=dict)
    index: dict[str, list[str]] = field(default_factory=dict)
    constraints: dict[str, dict[str, Constraint | str]] = field(
        default_factory=lambda: {ON_UPDATE: {}, ON_DELETE: {}}
    )

    def constraint_for(self, clause: str, field_name: str) -> Constraint | str | None:
        """Declared action for ``clause`` (``onUpdate``/``onDelete``) on a field, if any."""
        return self.constraints.get(clause, {}).get(field_name)


def get_column_marker(annotation: Any) -> Column | None:
    """
    Extract the ``Column`` marker from a type annotation.

    Works with ``Annotated[T, Column(...)]``.
    """
    if get_origin(annotation) is Annotated:
        for arg in get_args(annotation):
            if isinstance(arg, Column):
                return arg
    return None
