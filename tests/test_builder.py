"""
Unit tests for target schema construction.
"""

from typing import Annotated, Any

import pytest

from spot_orm import BaseEntity, Column, Connection, Mapper
from spot_orm.constraints import Constraint
from spot_orm.exceptions import (
    DuplicateIndexError,
    InvalidConstraintError,
    MetadataError,
    MissingTableError,
    UnknownFieldError,
)
from spot_orm.fields import FieldIndexSet
from spot_orm.migrations.builder import SchemaBuilder, build_table
from spot_orm.migrations.state import ColumnState, ForeignKeyState, IndexState
from spot_orm.entity_manager import EntityManager
from spot_orm.types import FieldType

from tests.entities import Comment, Note, Post, PostTag, Tag, User


def build(entity: type[BaseEntity], connection: Connection) -> Any:
    return SchemaBuilder(Mapper(entity, connection)).build()


class TestColumns:
    """Tests for columns and keys of the built schema."""

    def test_user_schema(self, connection: Connection) -> None:
        target = build(User, connection)
        assert target.name == "user"
        assert list(target.columns) == ["id", "name"]
        assert target.primary_key == ["id"]
        assert target.indexes == {}
        assert target.foreign_keys == {}

    def test_column_states(self, connection: Connection) -> None:
        columns = build(Post, connection).columns
        assert columns["id"] == ColumnState(name="id", column_type=FieldType.INTEGER, nullable=False)
        assert columns["title"] == ColumnState(name="title", column_type=FieldType.STRING, nullable=False, length=100)
        assert columns["status"].default == "draft"
        assert columns["published"].default == "0"
        assert columns["body"].nullable is True

    def test_default_string_length(self, connection: Connection) -> None:
        assert build(User, connection).columns["name"].length == 255

    def test_indexes(self, connection: Connection) -> None:
        assert build(Post, connection).indexes == {
            "post_title_unique": IndexState(name="post_title_unique", columns=["title"], unique=True),
            "post_status_index": IndexState(name="post_status_index", columns=["status"], unique=False),
        }

    def test_composite_unique_index(self, connection: Connection) -> None:
        index = build(PostTag, connection).indexes["post_tag_pair"]
        assert index.columns == ["post_id", "tag_id"]
        assert index.unique is True


class TestForeignKeys:
    """Tests for foreign keys derived from relations."""

    def test_owning_relation_with_declared_delete_action(self, connection: Connection) -> None:
        target = build(Comment, connection)
        assert list(target.foreign_keys) == ["post_id"]
        foreign_key = target.foreign_keys["post_id"]
        assert foreign_key.name == "fk_comment_post_id"
        assert foreign_key.referred_table == "post"
        assert foreign_key.referred_columns == ["id"]
        assert foreign_key.on_delete is Constraint.CASCADE
        assert foreign_key.on_update is None

    def test_inverse_relations_contribute_nothing(self, connection: Connection) -> None:
        target = build(Post, connection)
        assert target.foreign_keys == {}
        assert not any(fk.referred_table == "comment" for fk in target.foreign_keys.values())

    def test_no_declared_action_means_database_default(self, connection: Connection) -> None:
        foreign_key = build(Note, connection).foreign_keys["user_id"]
        assert foreign_key.referred_table == "user"
        assert foreign_key.on_update is None
        assert foreign_key.on_delete is None
        assert foreign_key.on_delete is not Constraint.NO_ACTION

    def test_string_actions_are_validated(self, connection: Connection) -> None:
        foreign_keys = build(PostTag, connection).foreign_keys
        assert foreign_keys["post_id"] == ForeignKeyState(
            name="fk_post_tag_post_id",
            columns=["post_id"],
            referred_table="post",
            referred_columns=["id"],
            on_delete=Constraint.CASCADE,
        )
        assert foreign_keys["tag_id"].on_update is Constraint.CASCADE
        assert foreign_keys["tag_id"].on_delete is Constraint.RESTRICT
        assert foreign_keys["tag_id"].referred_table == Tag.get_table_name()

    def test_building_is_repeatable(self, connection: Connection) -> None:
        assert build(PostTag, connection) == build(PostTag, connection)


class TestBuildErrors:
    """Tests for malformed metadata."""

    def test_relation_local_key_must_be_a_field(self, connection: Connection, isolated_registry: None) -> None:
        class Orphan(BaseEntity):
            id: Annotated[int, Column(primary=True)]

            @classmethod
            def relations(cls, mapper: Any, entity: Any) -> dict[str, Any]:
                return {"post": mapper.belongs_to(entity, Post, "post_id")}

        with pytest.raises(UnknownFieldError) as exc_info:
            build(Orphan, connection)
        assert exc_info.value.table == "orphan"
        assert exc_info.value.field == "post_id"

    def test_relation_to_unknown_entity(self, connection: Connection, isolated_registry: None) -> None:
        class Dangling(BaseEntity):
            id: Annotated[int, Column(primary=True)]
            ghost_id: int

            @classmethod
            def relations(cls, mapper: Any, entity: Any) -> dict[str, Any]:
                return {"ghost": mapper.belongs_to(entity, "Ghost", "ghost_id")}

        with pytest.raises(MissingTableError):
            build(Dangling, connection)

    def test_invalid_action(self, connection: Connection, isolated_registry: None) -> None:
        class Exploding(BaseEntity):
            id: Annotated[int, Column(primary=True)]
            post_id: Annotated[int, Column(on_delete="EXPLODE")]

            @classmethod
            def relations(cls, mapper: Any, entity: Any) -> dict[str, Any]:
                return {"post": mapper.belongs_to(entity, Post, "post_id")}

        with pytest.raises(InvalidConstraintError):
            build(Exploding, connection)

    def test_duplicate_index_name(self, connection: Connection, isolated_registry: None) -> None:
        class Clash(BaseEntity):
            id: Annotated[int, Column(primary=True)]
            a: Annotated[str, Column(unique="dup")]
            b: Annotated[str, Column(index="dup")]

        with pytest.raises(DuplicateIndexError) as exc_info:
            build(Clash, connection)
        assert exc_info.value.index == "dup"

    def test_unknown_field_in_index(self) -> None:
        fields = EntityManager(User).fields()
        keys = FieldIndexSet(primary=["id"], index={"user_email_index": ["email"]})
        with pytest.raises(UnknownFieldError, match="email"):
            build_table("user", fields, keys, {})

    def test_unknown_field_in_constraint(self) -> None:
        fields = EntityManager(User).fields()
        keys = FieldIndexSet(primary=["id"])
        keys.constraints["onDelete"]["team_id"] = "CASCADE"
        with pytest.raises(UnknownFieldError):
            build_table("user", fields, keys, {})

    def test_errors_are_metadata_errors(self) -> None:
        fields = EntityManager(User).fields()
        with pytest.raises(MetadataError):
            build_table("user", fields, FieldIndexSet(primary=["uuid"]), {})
