"""
Unit tests for entity metadata: table names, field definitions and keys.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any

import pytest

from spot_orm import BaseEntity, Column, EntityConfigDict
from spot_orm.constraints import ON_DELETE, ON_UPDATE, Constraint
from spot_orm.entity_manager import EntityManager
from spot_orm.exceptions import MetadataError
from spot_orm.model_base import clear_entity_registry, get_registered_entities
from spot_orm.types import FieldType

from tests.entities import Comment, Note, Post, PostTag, User


class TestTableName:
    """Tests for BaseEntity.get_table_name."""

    def test_snake_case_default(self) -> None:
        assert User.get_table_name() == "user"
        assert PostTag.get_table_name() == "post_tag"

    def test_configured_table_name(self) -> None:
        assert Note.get_table_name() == "user_notes"

    def test_entities_are_registered(self) -> None:
        registered = get_registered_entities()
        assert Post in registered
        assert Comment in registered


class TestFields:
    """Tests for EntityManager.fields."""

    def test_declaration_order(self) -> None:
        assert list(EntityManager(Post).fields()) == ["id", "title", "body", "status", "published"]

    def test_inferred_types(self) -> None:
        fields = EntityManager(Post).fields()
        assert fields["id"].type is FieldType.INTEGER
        assert fields["title"].type is FieldType.STRING
        assert fields["published"].type is FieldType.BOOLEAN

    def test_explicit_type(self) -> None:
        assert EntityManager(Post).fields()["body"].type is FieldType.TEXT

    def test_optional_means_nullable(self) -> None:
        fields = EntityManager(Post).fields()
        assert fields["body"].nullable is True
        assert fields["title"].nullable is False

    def test_primary_key_is_not_nullable(self) -> None:
        definition = EntityManager(User).fields()["id"]
        assert definition.primary is True
        assert definition.autoincrement is True
        assert definition.nullable is False

    def test_scalar_default_from_model(self) -> None:
        fields = EntityManager(Post).fields()
        assert fields["status"].default == "draft"
        assert fields["published"].default is False
        assert fields["body"].default is None

    def test_type_options(self) -> None:
        fields = EntityManager(Post).fields()
        assert (fields["title"].length, fields["title"].nullable) == (100, False)
        assert fields["id"].autoincrement is True
        assert fields["body"].length is None

    def test_python_type_mapping(self, isolated_registry: None) -> None:
        class Everything(BaseEntity):
            small: Annotated[int, Column(type=FieldType.SMALLINT)]
            price: Annotated[Decimal, Column(precision=8, scale=2)]
            ratio: float
            created: datetime
            day: date
            payload: bytes
            extra: dict[str, Any]
            tags: list[str]

        fields = EntityManager(Everything).fields()
        assert {name: d.type for name, d in fields.items()} == {
            "small": FieldType.SMALLINT,
            "price": FieldType.DECIMAL,
            "ratio": FieldType.FLOAT,
            "created": FieldType.DATETIME,
            "day": FieldType.DATE,
            "payload": FieldType.BINARY,
            "extra": FieldType.JSON,
            "tags": FieldType.JSON,
        }
        assert (fields["price"].precision, fields["price"].scale) == (8, 2)

    def test_unknown_declared_type(self, isolated_registry: None) -> None:
        class BadType(BaseEntity):
            value: Annotated[str, Column(type="geometry")]

        with pytest.raises(MetadataError, match="geometry"):
            EntityManager(BadType).fields()

    def test_type_that_cannot_be_inferred(self, isolated_registry: None) -> None:
        class Opaque(BaseEntity):
            value: int | str

        with pytest.raises(MetadataError, match="Column\\(type=...\\)"):
            EntityManager(Opaque).fields()


class TestFieldKeys:
    """Tests for EntityManager.field_keys."""

    def test_primary(self) -> None:
        assert EntityManager(Post).field_keys().primary == ["id"]
        assert EntityManager(Post).primary_key() == "id"

    def test_single_field_indexes(self) -> None:
        keys = EntityManager(Post).field_keys()
        assert keys.unique == {"post_title_unique": ["title"]}
        assert keys.index == {"post_status_index": ["status"]}

    def test_named_composite_index(self) -> None:
        keys = EntityManager(PostTag).field_keys()
        assert keys.unique == {"post_tag_pair": ["post_id", "tag_id"]}

    def test_constraints(self) -> None:
        keys = EntityManager(PostTag).field_keys()
        assert keys.constraints == {
            ON_UPDATE: {"tag_id": "CASCADE"},
            ON_DELETE: {"post_id": "CASCADE", "tag_id": "RESTRICT"},
        }
        assert EntityManager(Comment).field_keys().constraint_for(ON_DELETE, "post_id") is Constraint.CASCADE

    def test_no_constraints_declared(self) -> None:
        assert EntityManager(Note).field_keys().constraints == {ON_UPDATE: {}, ON_DELETE: {}}

    def test_entity_without_primary_key(self, isolated_registry: None) -> None:
        class LogLine(BaseEntity):
            model_config = EntityConfigDict(table_name="log_lines")

            message: str

        assert EntityManager(LogLine).field_keys().primary == []
        assert EntityManager(LogLine).primary_key() is None


class TestEntityRows:
    """Tests for row conversion helpers."""

    def test_from_db_ignores_unknown_columns(self) -> None:
        user = User.from_db({"id": 1, "name": "Ada", "legacy": "x"})
        assert user.id == 1
        assert user.name == "Ada"

    def test_to_db_exclude_none(self) -> None:
        assert User(name="Ada").to_db(exclude_none=True) == {"name": "Ada"}

    def test_related_storage(self) -> None:
        user = User(name="Ada")
        assert user.has_related("notes") is False
        user.set_related("notes", [])
        assert user.related("notes") == []
        with pytest.raises(KeyError):
            user.related("other")


class TestRegistry:
    """Tests for the entity registry."""

    def test_clear(self, isolated_registry: None) -> None:
        clear_entity_registry()
        assert get_registered_entities() == []
