"""
Connection configuration dataclass.

Provides an immutable configuration container used by
:meth:`spot_orm.connection.Connection.from_config`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DATABASE_URL_ENV = "SPOT_DATABASE_URL"
DATABASE_ECHO_ENV = "SPOT_DATABASE_ECHO"
DEFAULT_DATABASE_URL = "sqlite://"


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Immutable configuration for a database connection.

    Attributes:
        url: SQLAlchemy database URL (``sqlite://``, ``postgresql+psycopg2://...``).
        echo: Let SQLAlchemy log every statement it emits.
        sqlite_foreign_keys: Enable ``PRAGMA foreign_keys`` on every new
            SQLite connection; SQLite ignores foreign keys otherwise.
        pool_pre_ping: Test pooled connections before handing them out.
    """

    url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    sqlite_foreign_keys: bool = True
    pool_pre_ping: bool = True

    @classmethod
    def from_env(cls) -> ConnectionConfig:
        """Build a configuration from ``SPOT_DATABASE_URL`` and ``SPOT_DATABASE_ECHO``."""
        url = (os.getenv(DATABASE_URL_ENV) or DEFAULT_DATABASE_URL).strip()
        echo = (os.getenv(DATABASE_ECHO_ENV) or "0").strip().lower() in ("1", "true", "yes")
        return cls(url=url, echo=echo)


__all__ = ["ConnectionConfig"]
