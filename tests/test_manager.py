# ==============================================================================
# CONNECTION MANAGER TESTS
# ==============================================================================
# use(): argument resolution, commit / rollback / release guarantees
# Shortcuts: query, query_single, execute
# ==============================================================================

from unittest.mock import AsyncMock, MagicMock

import pytest

from sqldb import ConfigurationError


def make_connection() -> MagicMock:
    """Caller owned connection with spied commit / rollback."""
    conn = MagicMock(name="conn")
    conn.commit = AsyncMock()
    conn.rollback = AsyncMock()
    return conn


class TestUse:
    """Tests for use()."""

    @pytest.mark.asyncio
    async def test_returns_result_of_work(self, db, driver):
        """The work result is returned and the client released once."""
        async def work(conn):
            return [1, 2, 3]

        rows = await db.use(work)

        assert rows == [1, 2, 3]
        driver.get_client.assert_awaited_once()
        driver.release_client.assert_awaited_once_with(driver.client)
        driver.start_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_none_target_means_no_transaction(self, db, driver):
        await db.use(None, AsyncMock(return_value="ok"))

        driver.get_client.assert_awaited_once()
        driver.start_transaction.assert_not_awaited()
        driver.commit_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_with_transaction(self, db, driver):
        """A transaction is started, committed and never rolled back."""
        async def work(conn):
            assert conn.isolation_level == "blah"
            return [1, 2, 3]

        rows = await db.use("blah", work)

        assert rows == [1, 2, 3]
        driver.get_client.assert_awaited_once()
        driver.release_client.assert_awaited_once_with(driver.client)
        driver.start_transaction.assert_awaited_once_with(driver.client, "blah")
        driver.commit_transaction.assert_awaited_once_with(driver.client)
        driver.rollback_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reuse_existing_connection_commit(self, db, driver):
        """A caller owned connection is used verbatim and left alone."""
        conn = make_connection()

        async def work(conn2):
            assert conn2 is conn
            return [1, 2, 3]

        rows = await db.use(conn, work)

        assert rows == [1, 2, 3]
        driver.get_client.assert_not_awaited()
        driver.release_client.assert_not_awaited()
        conn.commit.assert_not_awaited()
        conn.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reuse_existing_connection_rollback(self, db, driver):
        """Errors from work on a caller owned connection trigger nothing."""
        conn = make_connection()
        error = RuntimeError("boom")

        async def work(conn2):
            raise error

        with pytest.raises(RuntimeError) as exc_info:
            await db.use(conn, work)

        assert exc_info.value is error
        driver.get_client.assert_not_awaited()
        driver.release_client.assert_not_awaited()
        conn.commit.assert_not_awaited()
        conn.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_nested_units_share_one_transaction(self, db, driver):
        """Nested use() on the outer connection runs in its transaction."""
        async def inner(conn):
            return await conn.execute("INSERT")

        async def outer(conn):
            first = await db.use(conn, inner)
            second = await db.use(conn, inner)
            return first + second

        driver.execute.return_value = 2

        total = await db.use("rc", outer)

        assert total == 4
        driver.get_client.assert_awaited_once()
        driver.start_transaction.assert_awaited_once_with(driver.client, "rc")
        driver.commit_transaction.assert_awaited_once_with(driver.client)
        driver.release_client.assert_awaited_once_with(driver.client)

    @pytest.mark.asyncio
    async def test_fails_without_work(self, db, driver):
        """A missing work function fails before any client is acquired."""
        with pytest.raises(ConfigurationError):
            await db.use("tx")
        with pytest.raises(ConfigurationError):
            await db.use(None)

        driver.get_client.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fails_with_non_callable_work(self, db, driver):
        with pytest.raises(ConfigurationError):
            await db.use("tx", "not a function")

        driver.get_client.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_work_error_rolls_back_with_cause(self, db, driver):
        """use('rc', fn) with fn raising: one rollback, no commit, same error."""
        error = RuntimeError("boom")

        async def work(conn):
            raise error

        with pytest.raises(RuntimeError) as exc_info:
            await db.use("rc", work)

        assert exc_info.value is error
        driver.rollback_transaction.assert_awaited_once_with(driver.client, error)
        driver.commit_transaction.assert_not_awaited()
        driver.release_client.assert_awaited_once_with(driver.client)

    @pytest.mark.asyncio
    async def test_commit_error_rolls_back(self, db, driver):
        """A failing commit is rolled back and surfaced."""
        error = RuntimeError("commit boom")
        driver.commit_transaction.side_effect = error
        driver.execute.return_value = 1

        with pytest.raises(RuntimeError) as exc_info:
            await db.use("tx", lambda conn: conn.execute("INSERT"))

        assert exc_info.value is error
        driver.commit_transaction.assert_awaited_once_with(driver.client)
        driver.rollback_transaction.assert_awaited_once_with(driver.client, error)
        driver.release_client.assert_awaited_once_with(driver.client)

    @pytest.mark.asyncio
    async def test_rollback_error_does_not_mask_original(self, db, driver):
        """A secondary rollback failure is swallowed."""
        driver.rollback_transaction.side_effect = RuntimeError("rollback boom")
        error = ValueError("woops")

        async def work(conn):
            raise error

        with pytest.raises(ValueError) as exc_info:
            await db.use("tx", work)

        assert exc_info.value is error
        driver.rollback_transaction.assert_awaited_once_with(driver.client, error)
        driver.commit_transaction.assert_not_awaited()
        driver.release_client.assert_awaited_once_with(driver.client)

    @pytest.mark.asyncio
    async def test_release_error_does_not_mask_original(self, db, driver):
        driver.release_client.side_effect = RuntimeError("release boom")
        error = ValueError("woops")

        async def work(conn):
            raise error

        with pytest.raises(ValueError) as exc_info:
            await db.use(work)

        assert exc_info.value is error
        driver.release_client.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_release_error_after_success_propagates(self, db, driver):
        driver.release_client.side_effect = RuntimeError("release boom")

        with pytest.raises(RuntimeError, match="release boom"):
            await db.use(AsyncMock(return_value=1))

    @pytest.mark.asyncio
    async def test_get_client_error_propagates(self, db, driver):
        """Nothing is released when no client was acquired."""
        driver.get_client.side_effect = ConnectionRefusedError("no db")
        work = AsyncMock()

        with pytest.raises(ConnectionRefusedError):
            await db.use("tx", work)

        work.assert_not_awaited()
        driver.release_client.assert_not_awaited()


class TestShortcuts:
    """Tests for the single statement helpers."""

    @pytest.mark.asyncio
    async def test_query(self, db, driver):
        driver.query.return_value = [1, 2]

        rows = await db.query(None, "SELECT", ["john"])

        assert rows == [1, 2]
        driver.query.assert_awaited_once_with(driver.client, "SELECT", ["john"])
        driver.start_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_query_single(self, db, driver):
        driver.query.return_value = [198, 305]

        row = await db.query_single(None, "SELECT")

        assert row == 198

    @pytest.mark.asyncio
    async def test_query_single_no_data(self, db, driver):
        driver.query.return_value = []

        assert await db.query_single(None, "SELECT") is None

    @pytest.mark.asyncio
    async def test_execute(self, db, driver):
        driver.execute.return_value = 3

        count = await db.execute(None, "INSERT", ["john"])

        assert count == 3

    @pytest.mark.asyncio
    async def test_query_with_transaction(self, db, driver):
        driver.query.return_value = [1, 2]

        rows = await db.query("rr", "SELECT", ["john"])

        assert rows == [1, 2]
        driver.start_transaction.assert_awaited_once_with(driver.client, "rr")
        driver.commit_transaction.assert_awaited_once_with(driver.client)
        driver.rollback_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_execute_with_rollback(self, db, driver):
        error = RuntimeError("boom")
        driver.execute.side_effect = error

        with pytest.raises(RuntimeError) as exc_info:
            await db.execute("rr", "INSERT")

        assert exc_info.value is error
        driver.start_transaction.assert_awaited_once_with(driver.client, "rr")
        driver.commit_transaction.assert_not_awaited()
        driver.rollback_transaction.assert_awaited_once_with(driver.client, error)

    @pytest.mark.asyncio
    async def test_execute_on_existing_connection(self, db, driver):
        """Shortcuts accept a caller owned connection too."""
        conn = make_connection()
        conn.execute = AsyncMock(return_value=[1, 1])

        counts = await db.execute(conn, ["A", "B"])

        assert counts == [1, 1]
        conn.execute.assert_awaited_once_with(["A", "B"], None)
        driver.get_client.assert_not_awaited()
