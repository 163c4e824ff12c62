"""
Statement capture for spot-orm.

Every statement that reaches the driver goes through
:meth:`spot_orm.connection.Connection.execute`, which hands its SQL text,
bound parameters and elapsed time to the active ``QueryLogger``. Wrapping a
``migrate()`` call shows exactly which DDL a reconciliation ran, and
wrapping a read shows how many queries eager loading cost.

Example::

    from spot_orm.debug import QueryLogger

    with QueryLogger() as log:
        locator.migrate_all(Post, Comment)

    log.statements      # ['CREATE TABLE post (...)', 'CREATE INDEX ...', ...]
    log.failures        # statements the database rejected, if any
"""

from __future__ import annotations

import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Self


_active_logger: ContextVar[QueryLogger | None] = ContextVar("_active_query_logger", default=None)


@dataclass
class QueryLog:
    """One executed statement: SQL as sent to the driver, its parameters and how long it took."""

    sql: str
    params: dict[str, Any]
    duration_ms: float
    failed: bool = False
    timestamp: float = field(default_factory=time.time)

    def __repr__(self) -> str:
        status = ", failed" if self.failed else ""
        return f"QueryLog({self.sql!r}, {self.duration_ms:.1f}ms{status})"


class QueryLogger:
    """
    Records the statements a block of spot-orm calls sends to the database.

    Only statements executed inside the ``with`` block are recorded. Loggers
    nest: an inner logger takes over until its block ends, then the outer one
    resumes. Statements rejected by the database are recorded too, flagged
    with ``failed``, so a migration that stopped half way still shows what
    ran before the failing statement.

    Attributes:
        queries: Recorded ``QueryLog`` entries in execution order.
    """

    def __init__(self) -> None:
        self.queries: list[QueryLog] = []
        self._token: Any = None

    def __enter__(self) -> Self:
        self._token = _active_logger.set(self)
        return self

    def __exit__(self, *exc: Any) -> None:
        if self._token is not None:
            _active_logger.reset(self._token)
            self._token = None

    @property
    def total_queries(self) -> int:
        return len(self.queries)

    @property
    def total_ms(self) -> float:
        """Time spent in the driver, in milliseconds."""
        return sum(q.duration_ms for q in self.queries)

    @property
    def statements(self) -> list[str]:
        """SQL text of every recorded statement."""
        return [q.sql for q in self.queries]

    @property
    def failures(self) -> list[str]:
        """SQL text of the statements the database rejected."""
        return [q.sql for q in self.queries if q.failed]

    def _record(self, sql: str, params: dict[str, Any], duration_ms: float, failed: bool = False) -> None:
        self.queries.append(QueryLog(sql=sql, params=params, duration_ms=duration_ms, failed=failed))

    def __repr__(self) -> str:
        return f"QueryLogger({self.total_queries} queries, {self.total_ms:.1f}ms)"


def _log_query(sql: str, params: dict[str, Any], duration_ms: float, failed: bool = False) -> None:
    logger = _active_logger.get(None)
    if logger is not None:
        logger._record(sql, params, duration_ms, failed)


def _start_timer() -> float:
    return time.perf_counter()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


__all__ = ["QueryLog", "QueryLogger"]
