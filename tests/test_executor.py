"""
Tests for single-query execution with guaranteed connection release.
"""

from datetime import datetime

import pytest

from tenant_demo.exceptions.database import (
    DatabaseConnectionError,
    DatabaseQueryError,
    QueryMalformedError
)
from tenant_demo.services.executor import check_placeholders

TENANT_SQL = "SELECT NOW() as current_time, $1::text as tenant"


class TestPlaceholderCheck:
    """Parameter/placeholder matching."""

    def test_matching_count_passes(self):
        check_placeholders("SELECT $1, $2", ["a", "b"])

    def test_no_placeholders_and_no_params_passes(self):
        check_placeholders("SELECT 1 as health_check", [])

    def test_repeated_placeholder_counts_once(self):
        check_placeholders("SELECT $1 WHERE $1 IS NOT NULL", ["a"])

    def test_quoted_dollar_signs_are_ignored(self):
        check_placeholders("SELECT '$1 off' as promo, \"$2\" FROM t", [])

    @pytest.mark.parametrize("query", [
        "SELECT 1 -- filter on $1 later",
        "SELECT /* $1 and\n $2 */ 1",
        "SELECT $$costs $1$$ as note",
        "SELECT $body$ $1 $2 $body$ as note",
        "SELECT price$1 FROM legacy_table",
    ])
    def test_non_placeholder_dollars_are_ignored(self, query):
        check_placeholders(query, [])

    def test_placeholder_next_to_ignored_text_still_counts(self):
        check_placeholders("SELECT $1::text -- tenant tag\n, '$2' as literal", ["acme"])
        with pytest.raises(QueryMalformedError):
            check_placeholders("SELECT /* tag */ $1", [])

    @pytest.mark.parametrize("query,params", [
        ("SELECT $1", []),
        ("SELECT $1", ["a", "b"]),
        ("SELECT $2", ["a"]),
        ("SELECT 1", ["a"]),
        ("SELECT $1, $3", ["a", "b", "c"]),
    ])
    def test_mismatch_raises(self, query, params):
        with pytest.raises(QueryMalformedError) as exc_info:
            check_placeholders(query, params)
        assert exc_info.value.kind == "QueryMalformed"


class TestFetch:
    """QueryExecutor.fetch raises typed errors."""

    @pytest.mark.asyncio
    async def test_returns_rows_and_metadata(self, executor, db):
        result = await executor.fetch(TENANT_SQL, ["acme"])

        assert result.first()["tenant"] == "acme"
        assert isinstance(result.first()["current_time"], datetime)
        assert result.metadata["row_count"] == 1
        assert "duration_ms" in result.metadata
        assert "executed_at" in result.metadata
        assert db.queries == [(TENANT_SQL, ("acme",))]

    @pytest.mark.asyncio
    async def test_malformed_query_never_acquires(self, executor, db):
        with pytest.raises(QueryMalformedError):
            await executor.fetch(TENANT_SQL, [])

        assert db.connect_calls == 0
        assert executor.pool.stats["acquired_total"] == 0

    @pytest.mark.asyncio
    async def test_query_error_is_wrapped_and_connection_returned(self, executor, db):
        cause = RuntimeError("relation does not exist")
        db.query_error = cause

        with pytest.raises(DatabaseQueryError) as exc_info:
            await executor.fetch(TENANT_SQL, ["acme"])

        error = exc_info.value
        assert error.kind == "QueryFailed"
        assert error.original_error is cause
        assert error.__cause__ is cause
        assert error.timestamp is not None
        assert "relation does not exist" in error.details
        assert executor.pool.leaked == 0
        assert executor.pool.stats["idle"] == 1

    @pytest.mark.asyncio
    async def test_connect_failure_keeps_its_kind(self, executor, db):
        db.reachable = False

        with pytest.raises(DatabaseConnectionError):
            await executor.fetch(TENANT_SQL, ["acme"])
        assert executor.pool.leaked == 0


class TestExecute:
    """QueryExecutor.execute returns explicit outcomes."""

    @pytest.mark.asyncio
    async def test_success_outcome(self, executor):
        outcome = await executor.execute("SELECT 1 as health_check, NOW() as db_time")

        assert outcome.ok
        assert outcome.error is None
        assert outcome.result.first()["health_check"] == 1

    @pytest.mark.asyncio
    async def test_failure_outcome(self, executor, db):
        db.query_error = RuntimeError("server closed the connection unexpectedly")

        outcome = await executor.execute(TENANT_SQL, ["acme"])

        assert not outcome.ok
        assert outcome.result is None
        assert outcome.error.kind == "QueryFailed"

    @pytest.mark.asyncio
    async def test_malformed_outcome(self, executor, db):
        outcome = await executor.execute(TENANT_SQL, ["a", "b"])

        assert outcome.error.kind == "QueryMalformed"
        assert db.connect_calls == 0

    @pytest.mark.asyncio
    async def test_no_leaks_after_many_failures(self, executor, db):
        db.query_error = RuntimeError("boom")

        for _ in range(25):
            outcome = await executor.execute(TENANT_SQL, ["acme"])
            assert not outcome.ok

        stats = executor.pool.stats
        assert executor.pool.leaked == 0
        assert stats["acquired_total"] == 25
        assert stats["released_total"] == 25
        assert stats["in_use"] == 0
