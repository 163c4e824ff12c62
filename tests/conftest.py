"""
Pytest configuration for spot-orm tests.

Every test gets a fresh in-memory SQLite database with foreign keys
enforced. PostgreSQL statement text is checked by compiling against the
SQLAlchemy PostgreSQL dialect, without a server.
"""

from collections.abc import Generator
from pathlib import Path

import pytest
import sqlalchemy as sa

from spot_orm import Connection, Locator
from spot_orm.model_base import _ENTITY_REGISTRY, get_registered_entities


@pytest.fixture
def connection() -> Generator[Connection, None, None]:
    """In-memory SQLite connection, closed after the test."""
    conn = Connection.from_url("sqlite://")
    yield conn
    conn.close()


@pytest.fixture
def locator(connection: Connection) -> Locator:
    return Locator(connection)


@pytest.fixture
def pg_connection() -> Connection:
    """
    Connection on a PostgreSQL mock engine.

    Usable for rendering statements only; nothing can be executed.
    """
    engine = sa.create_mock_engine("postgresql://", lambda *args, **kwargs: None)
    return Connection(engine)  # type: ignore[arg-type]


@pytest.fixture
def isolated_registry() -> Generator[None, None, None]:
    """Forget entities declared during the test."""
    saved = get_registered_entities()
    yield
    _ENTITY_REGISTRY[:] = saved


@pytest.fixture
def unreachable_connection(tmp_path: Path) -> Generator[Connection, None, None]:
    """SQLite connection whose database file lives in a missing directory."""
    conn = Connection.from_url(f"sqlite:///{tmp_path / 'missing' / 'db.sqlite'}")
    yield conn
    conn.close()
