from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Self

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult

from .exceptions import UnknownFieldError

if TYPE_CHECKING:
    from .collection import Collection
    from .mapper import Mapper

logger = logging.getLogger(__name__)


class Query:
    """
    A select statement on the table of one entity.

    The statement is a SQLAlchemy ``Select``; this class only adds the
    entity-aware filters and the eager-load list that reads hand to the
    collection.

    Example:
        ```python
        posts = mapper.query().where(author_id=1).order_by("-id").limit(10).with_("comments").execute()
        ```
    """

    def __init__(self, mapper: Mapper, statement: sa.Select[Any] | None = None) -> None:
        """
        Args:
            mapper: Mapper of the queried entity
            statement: Select to start from (default: all columns of the table)
        """
        self._mapper = mapper
        self._table = sa.table(mapper.table(), *[sa.column(name) for name in mapper.entity().model_fields])
        self._statement: sa.Select[Any] = statement if statement is not None else sa.select(self._table)
        self.with_relations: list[str] = []

    def mapper(self) -> Mapper:
        return self._mapper

    @property
    def table_clause(self) -> sa.TableClause:
        """Lightweight table of the entity, one column per field."""
        return self._table

    def _column(self, name: str) -> sa.ColumnClause[Any]:
        if name not in self._table.c:
            raise UnknownFieldError(self._mapper.table(), name, "query")
        return self._table.c[name]

    def where(self, **conditions: Any) -> Self:
        """
        Filter on field equality.

        Lists, tuples and sets become ``IN``; ``None`` becomes ``IS NULL``.
        """
        for name, value in conditions.items():
            column = self._column(name)
            if isinstance(value, (list, tuple, set, frozenset)):
                self._statement = self._statement.where(column.in_(list(value)))
            elif value is None:
                self._statement = self._statement.where(column.is_(None))
            else:
                self._statement = self._statement.where(column == value)
        return self

    def order_by(self, *fields: str) -> Self:
        """Order by fields; a leading ``-`` sorts descending."""
        for name in fields:
            if name.startswith("-"):
                self._statement = self._statement.order_by(self._column(name[1:]).desc())
            else:
                self._statement = self._statement.order_by(self._column(name).asc())
        return self

    def limit(self, value: int) -> Self:
        self._statement = self._statement.limit(value)
        return self

    def offset(self, value: int) -> Self:
        self._statement = self._statement.offset(value)
        return self

    def with_(self, *relations: str) -> Self:
        """Eager load relations, by name, when the query is read."""
        for name in relations:
            if name not in self.with_relations:
                self.with_relations.append(name)
        return self

    def builder(self) -> sa.Select[Any]:
        """The SQLAlchemy statement built so far."""
        return self._statement

    def execute(self) -> Collection[Any]:
        return self._mapper.resolver().read(self)

    def exec(self) -> CursorResult[Any] | int:
        return self._mapper.resolver().exec(self)

    def first(self) -> Any:
        return self.limit(1).execute().first()

    def __iter__(self) -> Any:
        return iter(self.execute())

    def __repr__(self) -> str:
        return f"Query({self._mapper.table()!r}, with={self.with_relations})"


__all__ = ["Query"]
