"""
Entity mapper.

A Mapper binds one entity class to a connection. It is the context
entities receive when declaring relations, and the entry point for
migration, queries and writes on that entity's table.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import sqlalchemy as sa

from .collection import Collection
from .entity_manager import EntityManager
from .exceptions import MetadataError
from .model_base import BaseEntity
from .query import Query
from .relations import EntityRef, Relation, ToMany, ToManyThrough, ToOne, resolve_entity
from .resolver import Resolver
from .types import BackendFamily

if TYPE_CHECKING:
    from .connection import Connection
    from .locator import Locator

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseEntity)

_DEFAULT_KEY = "id"


class Mapper(Generic[E]):
    """
    Data mapper for one entity class.

    Example::

        mapper = Mapper(Post, connection)
        mapper.migrate()
        mapper.insert(Post(title="Hello"))
        mapper.where(title="Hello").with_("comments").execute()
    """

    def __init__(self, entity: type[E], connection: Connection, locator: Locator | None = None):
        self._entity = entity
        self._connection = connection
        self._locator = locator

    def entity(self) -> type[E]:
        return self._entity

    def entity_manager(self) -> EntityManager:
        return EntityManager(self._entity)

    @property
    def connection(self) -> Connection:
        return self._connection

    def connection_is(self, family: BackendFamily | str) -> bool:
        """Whether the connection belongs to a backend family (``"sqlite"``, ``"postgres"``)."""
        return self._connection.backend_family() == BackendFamily(family)

    def table(self) -> str:
        return self._entity.get_table_name()

    def resolver(self) -> Resolver:
        return Resolver(self)

    def get_mapper(self, entity: EntityRef) -> Mapper[Any]:
        """Mapper of another entity on the same connection."""
        entity_class = resolve_entity(entity)
        if self._locator is not None:
            return self._locator.mapper(entity_class)
        return Mapper(entity_class, self._connection)

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def migrate(self) -> bool:
        """Converge the entity's table to its declared schema."""
        return self.resolver().migrate()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query(self, statement: sa.Select[Any] | None = None) -> Query:
        return Query(self, statement)

    def all(self) -> Query:
        return self.query()

    def where(self, **conditions: Any) -> Query:
        return self.query().where(**conditions)

    def collection(self, rows: list[dict[str, Any]], with_: list[str] | None = None) -> Collection[E]:
        """
        Wrap read rows in a collection, attaching eager loaded relations.

        Raises:
            MetadataError: If a requested relation is not declared
        """
        with_ = with_ or []
        primary_key = self.entity_manager().primary_key()
        if not with_:
            return Collection(self._entity, rows, primary_key=primary_key)

        relations = self.entity_manager().relations(self)
        unknown = [name for name in with_ if name not in relations]
        if unknown:
            raise MetadataError(f"Unknown relation(s) {unknown} on entity {self._entity.__name__}")

        def load(entities: list[E]) -> None:
            for name in with_:
                self._eager_load(name, relations[name], entities)

        return Collection(self._entity, rows, loader=load, primary_key=primary_key)

    def _eager_load(self, name: str, relation: Relation, entities: list[E]) -> None:
        match relation:
            case ToOne():
                keys = _values(entities, relation.local_key)
                by_key: dict[Any, Any] = {}
                if keys:
                    for item in self.get_mapper(relation.entity).where(**{relation.foreign_key: keys}).execute():
                        by_key[getattr(item, relation.foreign_key)] = item
                for entity in entities:
                    entity.set_related(name, by_key.get(getattr(entity, relation.local_key)))

            case ToMany():
                keys = _values(entities, relation.local_key)
                grouped: dict[Any, list[Any]] = defaultdict(list)
                if keys:
                    for item in self.get_mapper(relation.entity).where(**{relation.foreign_key: keys}).execute():
                        grouped[getattr(item, relation.foreign_key)].append(item)
                for entity in entities:
                    entity.set_related(name, grouped.get(getattr(entity, relation.local_key), []))

            case ToManyThrough():
                keys = _values(entities, relation.local_key)
                grouped = defaultdict(list)
                if keys:
                    for owner, item in self._read_through(relation, keys):
                        grouped[owner].append(item)
                for entity in entities:
                    entity.set_related(name, grouped.get(getattr(entity, relation.local_key), []))

    def _read_through(self, relation: ToManyThrough, keys: list[Any]) -> list[tuple[Any, Any]]:
        """Related entities joined through the join table, paired with the owner key."""
        other = self.get_mapper(relation.entity)
        through = resolve_entity(relation.through)
        through_table = sa.table(
            through.get_table_name(),
            sa.column(relation.through_local_key),
            sa.column(relation.through_foreign_key),
        )
        other_table = other.query().table_clause
        statement = (
            sa.select(*other_table.c, through_table.c[relation.through_local_key].label("_owner"))
            .select_from(
                other_table.join(
                    through_table,
                    other_table.c[relation.foreign_key] == through_table.c[relation.through_foreign_key],
                )
            )
            .where(through_table.c[relation.through_local_key].in_(keys))
        )
        result = self._connection.execute(statement)
        try:
            rows = [dict(row) for row in result.mappings()]
        finally:
            self._connection.release(result)
        return [(row.pop("_owner"), other.entity().from_db(row)) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, entity: E | dict[str, Any]) -> Any:
        """
        Insert an entity or a dict of field values.

        Returns:
            The primary key value of the new row (generated when not given);
            it is also set on the entity
        """
        data = entity.to_db(exclude_none=True) if isinstance(entity, BaseEntity) else dict(entity)
        primary_key = self.entity_manager().primary_key()

        if primary_key is not None and data.get(primary_key) is None:
            value = self.resolver().create_returning(self.table(), data, primary_key)
        else:
            self.resolver().create(self.table(), data)
            value = data.get(primary_key) if primary_key else None

        if isinstance(entity, BaseEntity) and primary_key is not None:
            setattr(entity, primary_key, value)
        return value

    def update(self, entity: E) -> int:
        """Write all fields of an entity back to its row, matched by primary key."""
        primary_key = self.entity_manager().primary_key()
        if primary_key is None:
            raise MetadataError(f"Entity {self._entity.__name__} has no primary key to update by")
        data = entity.to_db()
        key = data.pop(primary_key)
        return self.resolver().update(self.table(), data, {primary_key: key})

    # ------------------------------------------------------------------
    # Relation builders
    # ------------------------------------------------------------------

    def belongs_to(self, entity: BaseEntity, related: EntityRef, local_key: str) -> ToOne:
        """
        This entity stores ``local_key`` referencing the related primary key.
        """
        return ToOne(entity=related, local_key=local_key, foreign_key=_primary_key(related))

    def has_many(self, entity: BaseEntity, related: EntityRef, foreign_key: str, local_key: str | None = None) -> ToMany:
        """
        The related entity stores ``foreign_key`` referencing this entity's
        ``local_key`` (default: primary key).
        """
        return ToMany(
            entity=related,
            foreign_key=foreign_key,
            local_key=local_key or _primary_key(type(entity)),
        )

    def has_many_through(
        self,
        entity: BaseEntity,
        related: EntityRef,
        through: EntityRef,
        local_key: str,
        foreign_key: str,
    ) -> ToManyThrough:
        """
        Related entities reached through a join entity.

        Args:
            entity: This entity
            related: Related entity
            through: Join entity
            local_key: Join entity field referencing this entity
            foreign_key: Join entity field referencing the related entity
        """
        return ToManyThrough(
            entity=related,
            through=through,
            local_key=_primary_key(type(entity)),
            foreign_key=_primary_key(related),
            through_local_key=local_key,
            through_foreign_key=foreign_key,
        )

    def __repr__(self) -> str:
        return f"Mapper({self._entity.__name__})"


def _primary_key(entity: EntityRef) -> str:
    return EntityManager(resolve_entity(entity)).primary_key() or _DEFAULT_KEY


def _values(entities: list[Any], field: str) -> list[Any]:
    return list(dict.fromkeys(value for entity in entities if (value := getattr(entity, field)) is not None))


__all__ = ["Mapper"]
