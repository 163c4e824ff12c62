import logging
import re as _re
from typing import Any, Self, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, PrivateAttr

if TYPE_CHECKING:
    from .mapper import Mapper
    from .relations import Relation

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY_RE = _re.compile(r"(?<!^)(?=[A-Z])")

# Global registry of all entities, used to resolve relation targets by name
_ENTITY_REGISTRY: list[type["BaseEntity"]] = []


def get_registered_entities() -> list[type["BaseEntity"]]:
    """
    Get all registered entities.

    Returns:
        List of all entity classes that inherit from BaseEntity
    """
    return _ENTITY_REGISTRY.copy()


def clear_entity_registry() -> None:
    """
    Clear the entity registry. Useful for testing.
    """
    _ENTITY_REGISTRY.clear()


class EntityConfigDict(ConfigDict, total=False):
    """
    EntityConfigDict is a configuration dictionary for spot-orm entities.

    Extends Pydantic's ConfigDict with table options.

    Attributes:
        table_name: Override the default table name (default: snake_case
            class name, ``BlogPost`` -> ``blog_post``)
    """

    table_name: str | None


class BaseEntity(BaseModel):
    """
    Base class for entities persisted through spot-orm.

    Entities are Pydantic models; each annotated field becomes a column.
    Storage options are attached with :class:`~spot_orm.fields.Column`
    and relations are declared by overriding :meth:`relations`.

    Example:
        class User(BaseEntity):
            model_config = EntityConfigDict(table_name="users")

            id: Annotated[int | None, Column(primary=True, autoincrement=True)] = None
            email: Annotated[str, Column(required=True, unique=True)]
            name: str | None = None
    """

    model_config = ConfigDict(
        populate_by_name=True,
    )

    # Related entities attached by eager loading, keyed by relation name
    _related: dict[str, Any] = PrivateAttr(default_factory=dict)

    def __init_subclass__(cls, **kwargs: Any) -> None:
        """Register subclasses so relations can reference them by name."""
        super().__init_subclass__(**kwargs)
        # Only register concrete entities, not intermediate base classes
        if cls.__name__ != "BaseEntity" and not cls.__name__.startswith("_"):
            if cls not in _ENTITY_REGISTRY:
                _ENTITY_REGISTRY.append(cls)

    @classmethod
    def get_table_name(cls) -> str:
        """
        Get the table name for the entity.

        Returns the table_name from model_config if set,
        otherwise the snake_case class name.
        """
        if hasattr(cls, "model_config"):
            table_name = cls.model_config.get("table_name", None)
            if isinstance(table_name, str):
                return table_name
        return _CAMEL_BOUNDARY_RE.sub("_", cls.__name__).lower()

    @classmethod
    def relations(cls, mapper: "Mapper", entity: Any) -> dict[str, "Relation"]:
        """
        Declare the relations of this entity.

        Override in subclasses and build relations with the mapper helpers
        (``belongs_to``, ``has_many``, ``has_many_through``).

        Args:
            mapper: Mapper for this entity type
            entity: A blank instance of this entity

        Returns:
            Mapping of relation name to Relation
        """
        return {}

    @classmethod
    def blank(cls) -> Self:
        """Instance without validation, passed to :meth:`relations`."""
        return cls.model_construct()

    @classmethod
    def from_db(cls, record: dict[str, Any]) -> Self:
        """
        Create an instance from an associative database row.

        Columns without a matching field are ignored.
        """
        known = {key: value for key, value in record.items() if key in cls.model_fields}
        return cls.model_validate(known)

    def to_db(self, exclude_none: bool = False) -> dict[str, Any]:
        """Column values of this entity, keyed by field name."""
        return self.model_dump(exclude_none=exclude_none)

    def related(self, name: str) -> Any:
        """
        Get an eagerly loaded relation.

        Raises:
            KeyError: If the relation was not loaded with ``Query.with_()``
        """
        return self._related[name]

    def set_related(self, name: str, value: Any) -> None:
        self._related[name] = value

    def has_related(self, name: str) -> bool:
        return name in self._related
