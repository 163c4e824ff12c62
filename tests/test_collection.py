"""
Tests for collections and eager loaded relations.
"""

from typing import Any

import pytest

from spot_orm import Collection, Locator
from spot_orm.debug import QueryLogger

from tests.entities import ALL_ENTITIES, Comment, Post, PostTag, Tag, User


class TestCollection:
    """Tests for the Collection sequence."""

    def test_lazy_hydration(self) -> None:
        collection = Collection(User, [{"id": 1, "name": "Ada"}, {"id": 2, "name": "Grace"}], primary_key="id")
        assert collection.loaded is False
        assert len(collection) == 2
        assert collection.entity_ids() == [1, 2]
        assert collection.loaded is False

        assert collection[0].name == "Ada"
        assert collection.loaded is True

    def test_restartable(self) -> None:
        collection = Collection(User, [{"id": 1, "name": "Ada"}])
        first = list(collection)
        second = list(collection)
        assert first == second
        assert first[0] is second[0]

    def test_loader_runs_once(self) -> None:
        calls: list[int] = []

        def loader(entities: list[Any]) -> None:
            calls.append(len(entities))

        collection = Collection(User, [{"id": 1, "name": "Ada"}], loader=loader)
        collection.to_list()
        collection.first()
        assert calls == [1]

    def test_loader_skipped_when_empty(self) -> None:
        collection = Collection(User, [], loader=lambda entities: pytest.fail("loader called"))
        assert collection.first() is None
        assert collection.to_list() == []

    def test_to_dicts(self) -> None:
        collection = Collection(User, [{"id": 1, "name": "Ada", "legacy": "x"}])
        assert collection.to_dicts() == [{"id": 1, "name": "Ada"}]
        assert collection[0:1][0].id == 1

    def test_entity_ids_without_primary_key(self) -> None:
        assert Collection(User, [{"id": 1, "name": "Ada"}]).entity_ids() == []


@pytest.fixture
def blog(locator: Locator) -> dict[str, Any]:
    locator.migrate_all(*ALL_ENTITIES)
    posts = locator.mapper(Post)
    first = posts.insert(Post(title="First"))
    second = posts.insert(Post(title="Second"))
    posts.insert(Post(title="Empty"))

    comments = locator.mapper(Comment)
    comments.insert(Comment(post_id=first, body="one"))
    comments.insert(Comment(post_id=first, body="two"))
    comments.insert(Comment(post_id=second, body="three"))

    tags = locator.mapper(Tag)
    python = tags.insert(Tag(name="python"))
    sql = tags.insert(Tag(name="sql"))

    join = locator.mapper(PostTag)
    join.insert(PostTag(post_id=first, tag_id=python))
    join.insert(PostTag(post_id=first, tag_id=sql))
    join.insert(PostTag(post_id=second, tag_id=sql))
    return {"first": first, "second": second}


class TestEagerLoading:
    """Tests for Query.with_ eager loading."""

    def test_to_many(self, locator: Locator, blog: dict[str, Any]) -> None:
        posts = locator.mapper(Post).all().order_by("id").with_("comments").execute()
        assert [[c.body for c in p.related("comments")] for p in posts] == [["one", "two"], ["three"], []]

    def test_to_many_through(self, locator: Locator, blog: dict[str, Any]) -> None:
        posts = locator.mapper(Post).all().order_by("id").with_("tags").execute()
        assert [sorted(t.name for t in p.related("tags")) for p in posts] == [["python", "sql"], ["sql"], []]

    def test_to_one(self, locator: Locator, blog: dict[str, Any]) -> None:
        comments = locator.mapper(Comment).all().order_by("id").with_("post").execute()
        assert [c.related("post").title for c in comments] == ["First", "First", "Second"]

    def test_one_query_per_relation(self, locator: Locator, blog: dict[str, Any]) -> None:
        with QueryLogger() as log:
            posts = locator.mapper(Post).all().with_("comments", "tags").execute()
            posts.to_list()
        assert log.total_queries == 3

    def test_relations_not_loaded_until_accessed(self, locator: Locator, blog: dict[str, Any]) -> None:
        with QueryLogger() as log:
            posts = locator.mapper(Post).where(id=blog["first"]).with_("comments").execute()
        assert log.total_queries == 1
        assert posts.loaded is False
        assert len(posts.first().related("comments")) == 2

    def test_without_with_nothing_is_attached(self, locator: Locator, blog: dict[str, Any]) -> None:
        post = locator.mapper(Post).where(id=blog["second"]).first()
        assert post.has_related("comments") is False
