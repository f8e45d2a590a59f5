"""
Unit tests for the storage access layer and its retry policy.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import asyncpg
import pytest

from shared.errors import StorageError
from shared.test_helpers import InMemoryConnection, InMemoryPool, create_workflow_row
from service_workflow_gateway.app.domain.models import ExecutionRecord, ExecutionStatus, RequestMethod
from service_workflow_gateway.app.persistence.database import Database, is_transient_storage_error
from service_workflow_gateway.app.persistence.stores import ExecutionLogStore, WorkflowStore


def make_record(**overrides):
    values = dict(
        owner_id=1,
        workflow_id="12345",
        request_method=RequestMethod.GET,
        request_parameters={"lang": "en"},
        response_data={"success": True, "code": 0, "data": None, "message": ""},
        execution_time_ms=42,
        status=ExecutionStatus.SUCCESS,
    )
    values.update(overrides)
    return ExecutionRecord(**values)


class TestTransientClassification:
    """Test cases for is_transient_storage_error."""

    @pytest.mark.parametrize("exc", [
        ConnectionResetError("reset by peer"),
        ConnectionAbortedError("aborted"),
        BrokenPipeError("broken pipe"),
        asyncpg.exceptions.ConnectionDoesNotExistError("connection was closed"),
    ])
    def test_transient(self, exc):
        """Test connection-level failures are retryable."""
        assert is_transient_storage_error(exc) is True

    @pytest.mark.parametrize("exc", [
        asyncpg.exceptions.UniqueViolationError("duplicate key"),
        ValueError("bad value"),
        TimeoutError("query timeout"),
    ])
    def test_not_transient(self, exc):
        """Test everything else surfaces immediately."""
        assert is_transient_storage_error(exc) is False


class TestDatabaseRetry:
    """Test cases for the Database retry policy."""

    @pytest.mark.asyncio
    async def test_retries_transient_errors_then_succeeds(self):
        """Test two connection resets followed by a successful insert."""
        connection = InMemoryConnection(failures={
            "execute": [ConnectionResetError("reset"), ConnectionResetError("reset")],
        })
        pool = InMemoryPool(connection)
        database = Database("postgresql://unused", pool=pool, retry_base_delay=1.0)

        with patch("shared.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await ExecutionLogStore(database).insert(make_record())

        assert len(connection.logs) == 1
        assert connection.calls == ["execute", "execute", "execute"]
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]
        # each attempt acquires and releases its own connection
        assert pool.acquired == 3
        assert pool.released == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_last_error(self):
        """Test the final transient error propagates after three attempts."""
        connection = InMemoryConnection(failures={
            "fetchrow": [BrokenPipeError("one"), BrokenPipeError("two"), BrokenPipeError("three")],
        })
        database = Database("postgresql://unused", pool=InMemoryPool(connection), retry_base_delay=0)

        with pytest.raises(BrokenPipeError, match="three"):
            await database.fetchrow("SELECT id FROM workflows WHERE workflow_id = $1", "12345")

        assert connection.calls == ["fetchrow"] * 3

    @pytest.mark.asyncio
    async def test_non_transient_error_not_retried(self):
        """Test a constraint violation fails on the first attempt."""
        connection = InMemoryConnection(failures={
            "execute": [asyncpg.exceptions.UniqueViolationError("duplicate key")],
        })
        database = Database("postgresql://unused", pool=InMemoryPool(connection), retry_base_delay=0)

        with pytest.raises(asyncpg.exceptions.UniqueViolationError):
            await ExecutionLogStore(database).insert(make_record())

        assert connection.calls == ["execute"]
        assert connection.logs == []

    @pytest.mark.asyncio
    async def test_connect_failure_raises_storage_error(self):
        """Test an unreachable server surfaces as StorageError."""
        database = Database("postgresql://unused")

        with patch("asyncpg.create_pool", new=AsyncMock(side_effect=OSError("connection refused"))):
            with pytest.raises(StorageError):
                await database.connect()

        assert database.pool is None

    @pytest.mark.asyncio
    async def test_concurrent_lazy_connect_creates_one_pool(self):
        """Test concurrent first uses share a single pool."""
        created = []

        async def create_pool(*args, **kwargs):
            await asyncio.sleep(0.01)
            pool = InMemoryPool()
            created.append(pool)
            return pool

        database = Database("postgresql://unused")

        with patch("asyncpg.create_pool", new=create_pool):
            results = await asyncio.gather(*(database.fetchval("SELECT 1") for _ in range(5)))

        assert results == [1] * 5
        assert len(created) == 1
        assert created[0].acquired == 5

        await database.close()
        assert created[0].closed is True

    @pytest.mark.asyncio
    async def test_lazy_connect_recovers_after_failure(self):
        """Test a failed lazy connect is retried by the next caller."""
        pool = InMemoryPool()
        create_pool = AsyncMock(side_effect=[OSError("connection refused"), pool])
        database = Database("postgresql://unused")

        with patch("asyncpg.create_pool", new=create_pool):
            with pytest.raises(StorageError):
                await database.fetchval("SELECT 1")
            assert await database.fetchval("SELECT 1") == 1

        assert database.pool is pool

    @pytest.mark.asyncio
    async def test_health_check(self, database, connection):
        """Test health reflects whether SELECT 1 succeeds."""
        assert await database.health_check() is True

        connection.failures["fetchval"] = [ConnectionResetError("reset")]
        assert await database.health_check() is False

    @pytest.mark.asyncio
    async def test_close_releases_pool(self, database, pool):
        """Test closing the database closes the pool once."""
        await database.close()
        await database.close()

        assert pool.closed is True
        assert database.pool is None


class TestStores:
    """Test cases for WorkflowStore and ExecutionLogStore."""

    @pytest.mark.asyncio
    async def test_get_by_workflow_id(self, database):
        """Test a stored row maps onto WorkflowConfig."""
        config = await WorkflowStore(database).get_by_workflow_id("12345")

        assert config.workflow_id == "12345"
        assert config.owner_id == 1
        assert config.raw_credential == "api sk-abc"
        assert config.default_parameters_text == '{"lang": "en"}'
        assert config.preferred_method is RequestMethod.POST

    @pytest.mark.asyncio
    async def test_oldest_row_wins(self, connection, database):
        """Test duplicate workflow ids resolve to the lowest row id."""
        connection.workflows.append(create_workflow_row(user_id=7, row_id=0, token="sk-other"))

        config = await WorkflowStore(database).get_by_workflow_id("12345")

        assert config.owner_id == 7

    @pytest.mark.asyncio
    async def test_unknown_workflow(self, database):
        """Test an unknown id yields None."""
        assert await WorkflowStore(database).get_by_workflow_id("missing") is None

    @pytest.mark.asyncio
    async def test_ownership(self, database):
        """Test ownership lookup is scoped by user."""
        store = WorkflowStore(database)

        assert await store.is_owned_by("12345", 1) is True
        assert await store.is_owned_by("12345", 2) is False

    @pytest.mark.asyncio
    async def test_insert_and_list(self, connection, database):
        """Test inserted records page back newest first with decoded JSON."""
        log_store = ExecutionLogStore(database)
        for index in range(3):
            await log_store.insert(make_record(request_parameters={"n": index}))
        await log_store.insert(make_record(owner_id=2))

        logs, total = await log_store.list_for_workflow("12345", 1, page=1, limit=2)

        assert total == 3
        assert [entry["request_params"] for entry in logs] == [{"n": 2}, {"n": 1}]
        assert logs[0]["status"] == "success"
        assert logs[0]["request_method"] == "GET"
        assert isinstance(logs[0]["created_at"], str)

        second_page, _ = await log_store.list_for_workflow("12345", 1, page=2, limit=2)
        assert [entry["request_params"] for entry in second_page] == [{"n": 0}]

    @pytest.mark.asyncio
    async def test_insert_stores_null_response(self, connection, database):
        """Test failed invocations persist a null response."""
        await ExecutionLogStore(database).insert(make_record(
            response_data=None, status=ExecutionStatus.ERROR, error_message="boom"
        ))

        row = connection.logs[0]
        assert row["response_data"] is None
        assert row["status"] == "error"
        assert row["error_message"] == "boom"
        assert row["request_params"] == '{"lang": "en"}'
