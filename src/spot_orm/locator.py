from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from .mapper import Mapper
from .model_base import BaseEntity

if TYPE_CHECKING:
    from .connection import Connection

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseEntity)


class Locator:
    """
    Hands out one Mapper per entity class, all sharing one connection.

    Example::

        locator = Locator(Connection.from_url("sqlite://"))
        locator.migrate_all(Post, Comment)
        posts = locator.mapper(Post)
    """

    def __init__(self, connection: Connection):
        self.connection = connection
        self._mappers: dict[type[BaseEntity], Mapper[Any]] = {}

    def mapper(self, entity: type[E]) -> Mapper[E]:
        if entity not in self._mappers:
            self._mappers[entity] = Mapper(entity, self.connection, locator=self)
        return self._mappers[entity]

    def migrate_all(self, *entities: type[BaseEntity]) -> bool:
        """
        Migrate entities in the order given.

        Referenced tables must come before the tables referencing them on
        backends that check foreign keys at creation.
        """
        for entity in entities:
            self.mapper(entity).migrate()
        logger.info("Migrated %d entities", len(entities))
        return True


__all__ = ["Locator"]
