"""
Tests for the debug module: QueryLog and QueryLogger.
"""

from __future__ import annotations

import pytest

from spot_orm import Connection
from spot_orm.debug import QueryLog, QueryLogger, _active_logger, _log_query
from spot_orm.exceptions import StatementError


# ---------------------------------------------------------------------------
# QueryLog
# ---------------------------------------------------------------------------


class TestQueryLog:
    """Tests for QueryLog dataclass."""

    def test_basic_fields(self) -> None:
        log = QueryLog(sql="SELECT * FROM post", params={}, duration_ms=1.5)
        assert log.sql == "SELECT * FROM post"
        assert log.params == {}
        assert log.duration_ms == 1.5
        assert log.timestamp > 0

    def test_repr(self) -> None:
        log = QueryLog(sql="SELECT 1", params={}, duration_ms=0.5)
        assert "SELECT 1" in repr(log)
        assert "0.5ms" in repr(log)

    def test_failed_repr(self) -> None:
        log = QueryLog(sql="SELECT 1", params={}, duration_ms=0.5, failed=True)
        assert log.failed is True
        assert repr(log) == "QueryLog('SELECT 1', 0.5ms, failed)"


# ---------------------------------------------------------------------------
# QueryLogger
# ---------------------------------------------------------------------------


class TestQueryLogger:
    """Tests for QueryLogger context manager."""

    def test_initial_state(self) -> None:
        logger = QueryLogger()
        assert logger.queries == []
        assert logger.total_queries == 0
        assert logger.total_ms == 0.0

    def test_context_manager_activates(self) -> None:
        assert _active_logger.get(None) is None
        with QueryLogger() as logger:
            assert _active_logger.get(None) is logger
        assert _active_logger.get(None) is None

    def test_record_query(self) -> None:
        logger = QueryLogger()
        logger._record("SELECT 1", {}, 1.5)
        logger._record("SELECT 2", {"x": 1}, 2.0)
        assert logger.total_queries == 2
        assert logger.total_ms == 3.5
        assert logger.statements == ["SELECT 1", "SELECT 2"]
        assert logger.queries[1].params == {"x": 1}

    def test_log_query_no_logger(self) -> None:
        """_log_query is a no-op when no logger is active."""
        _log_query("SELECT 1", {}, 1.0)

    def test_repr(self) -> None:
        with QueryLogger() as logger:
            _log_query("Q1", {}, 1.0)
            _log_query("Q2", {}, 2.0)
        assert "2 queries" in repr(logger)
        assert "3.0ms" in repr(logger)

    def test_nested_loggers(self) -> None:
        """Inner logger captures its own statements; outer resumes after."""
        with QueryLogger() as outer:
            _log_query("outer1", {}, 1.0)
            with QueryLogger() as inner:
                _log_query("inner1", {}, 2.0)
            _log_query("outer2", {}, 3.0)
        assert outer.statements == ["outer1", "outer2"]
        assert inner.statements == ["inner1"]


class TestConnectionCapture:
    """Statements executed through a Connection are captured."""

    def test_executed_statements(self, connection: Connection) -> None:
        with QueryLogger() as log:
            connection.execute("CREATE TABLE t (id INTEGER)")
            connection.execute("INSERT INTO t (id) VALUES (:id)", {"id": 1})
        assert log.statements == ["CREATE TABLE t (id INTEGER)", "INSERT INTO t (id) VALUES (:id)"]
        assert log.queries[1].params == {"id": 1}
        assert all(q.duration_ms >= 0 for q in log.queries)
        assert log.failures == []

    def test_failed_statements_are_captured(self, connection: Connection) -> None:
        with QueryLogger() as log, pytest.raises(StatementError):
            connection.execute("SELECT * FROM missing")
        assert log.statements == ["SELECT * FROM missing"]
        assert log.failures == ["SELECT * FROM missing"]
