"""
Relation model for spot-orm.

Relations are declared by entities independently of which side stores
the key. The three variants form a tagged union:

- :class:`ToOne`: owning side; this table stores ``local_key`` which
  references ``foreign_key`` on the related table.
- :class:`ToMany`: inverse side; the related table stores
  ``foreign_key`` pointing back at ``local_key`` of this table.
- :class:`ToManyThrough`: inverse side mediated by a join table.

Only ``ToOne`` contributes a foreign key to the table schema.

Example:
    class Post(BaseEntity):
        id: Annotated[int, Column(primary=True, autoincrement=True)]

        @classmethod
        def relations(cls, mapper, entity):
            return {"comments": mapper.has_many(entity, "Comment", "post_id")}

    class Comment(BaseEntity):
        id: Annotated[int, Column(primary=True, autoincrement=True)]
        post_id: Annotated[int, Column(required=True, on_delete="CASCADE")]

        @classmethod
        def relations(cls, mapper, entity):
            return {"post": mapper.belongs_to(entity, Post, "post_id")}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, TypeAlias, runtime_checkable

from .exceptions import MissingTableError
from .types import RelationKind

if TYPE_CHECKING:
    from .mapper import Mapper
    from .model_base import BaseEntity

EntityRef: TypeAlias = "type[BaseEntity] | str"


def resolve_entity(ref: EntityRef) -> type[BaseEntity]:
    """
    Resolve an entity reference to its class.

    Strings are looked up by class name in the entity registry, which
    allows two entities to reference each other.

    Raises:
        MissingTableError: If the reference is not a known entity
    """
    from .model_base import BaseEntity, get_registered_entities

    if isinstance(ref, str):
        for entity in get_registered_entities():
            if entity.__name__ == ref:
                return entity
        raise MissingTableError(ref)
    if isinstance(ref, type) and issubclass(ref, BaseEntity):
        return ref
    raise MissingTableError(getattr(ref, "__name__", repr(ref)))


@dataclass(frozen=True)
class ToOne:
    """
    Owning side of a relation (belongs-to).

    Attributes:
        entity: Related entity class or class name
        local_key: Column on this table holding the reference
        foreign_key: Referenced column on the related table
    """

    kind: ClassVar[RelationKind] = RelationKind.TO_ONE

    entity: EntityRef
    local_key: str
    foreign_key: str

    def entity_name(self) -> str:
        return self.entity if isinstance(self.entity, str) else self.entity.__name__


@dataclass(frozen=True)
class ToMany:
    """
    Inverse side of a one-to-many relation (has-many).

    Attributes:
        entity: Related entity class or class name
        foreign_key: Column on the related table pointing back here
        local_key: Column on this table the related rows reference
    """

    kind: ClassVar[RelationKind] = RelationKind.TO_MANY

    entity: EntityRef
    foreign_key: str
    local_key: str

    def entity_name(self) -> str:
        return self.entity if isinstance(self.entity, str) else self.entity.__name__


@dataclass(frozen=True)
class ToManyThrough:
    """
    Inverse side of a many-to-many relation through a join entity.

    Attributes:
        entity: Related entity class or class name
        through: Join entity class or class name
        local_key: Column on this table referenced by the join table
        foreign_key: Column on the related table referenced by the join table
        through_local_key: Join table column referencing this table
        through_foreign_key: Join table column referencing the related table
    """

    kind: ClassVar[RelationKind] = RelationKind.TO_MANY_THROUGH

    entity: EntityRef
    through: EntityRef
    local_key: str
    foreign_key: str
    through_local_key: str
    through_foreign_key: str

    def entity_name(self) -> str:
        return self.entity if isinstance(self.entity, str) else self.entity.__name__


Relation: TypeAlias = ToOne | ToMany | ToManyThrough


@runtime_checkable
class RelationSource(Protocol):
    """Capability of declaring relations, implemented by every entity."""

    @classmethod
    def relations(cls, mapper: Mapper, entity: Any) -> dict[str, Relation]: ...


__all__ = [
    "Relation",
    "RelationSource",
    "ToMany",
    "ToManyThrough",
    "ToOne",
    "resolve_entity",
]
