"""
Entity collections.

A Collection holds the rows of one read and turns them into entities on
first access. Rows are kept, so iterating again yields the same entities.
"""

from collections.abc import Callable, Iterator, Sequence
from typing import Any, Generic, TypeVar, overload

from .model_base import BaseEntity

E = TypeVar("E", bound=BaseEntity)


class Collection(Sequence[E], Generic[E]):
    """
    Lazy, finite, restartable sequence of entities.

    Args:
        entity: Entity class rows are hydrated into
        rows: Associative rows (column name to value)
        loader: Called once with the hydrated entities, used to attach
            eagerly loaded relations
        primary_key: Primary key field, used by :meth:`entity_ids`
    """

    def __init__(
        self,
        entity: type[E],
        rows: list[dict[str, Any]],
        loader: Callable[[list[E]], None] | None = None,
        primary_key: str | None = None,
    ):
        self.entity = entity
        self._rows = rows
        self._loader = loader
        self._primary_key = primary_key
        self._entities: list[E] | None = None

    def _materialize(self) -> list[E]:
        if self._entities is None:
            entities = [self.entity.from_db(row) for row in self._rows]
            if self._loader is not None and entities:
                self._loader(entities)
            self._entities = entities
        return self._entities

    @property
    def loaded(self) -> bool:
        """Whether entities have been built yet."""
        return self._entities is not None

    def __len__(self) -> int:
        return len(self._rows)

    @overload
    def __getitem__(self, index: int) -> E: ...

    @overload
    def __getitem__(self, index: slice) -> list[E]: ...

    def __getitem__(self, index: int | slice) -> E | list[E]:
        return self._materialize()[index]

    def __iter__(self) -> Iterator[E]:
        return iter(self._materialize())

    def first(self) -> E | None:
        entities = self._materialize()
        return entities[0] if entities else None

    def to_list(self) -> list[E]:
        return list(self._materialize())

    def to_dicts(self) -> list[dict[str, Any]]:
        """Entities as field dictionaries."""
        return [entity.to_db() for entity in self._materialize()]

    def entity_ids(self) -> list[Any]:
        """Primary key values, in row order."""
        if self._primary_key is None:
            return []
        return [row.get(self._primary_key) for row in self._rows]

    def __repr__(self) -> str:
        return f"Collection({self.entity.__name__}, {len(self)} rows)"


__all__ = ["Collection"]
