"""Tests for transaction sequencing and the transaction state machine."""

import datetime
import gc
import logging

import pytest
import pytest_asyncio

from spanner_client import (
    RemoteError,
    Transaction,
    TransactionMode,
    TransactionState,
    UsageError,
    Value,
)

from conftest import result_set


@pytest_asyncio.fixture
async def session(database):
    session = await database.create_session()
    yield session
    if not session.is_closed:
        await session.close()


@pytest.mark.asyncio
class TestExecuteSql:
    async def test_sends_transaction_sql_and_seqno(self, session, fake_spanner):
        tx = await session.begin_transaction(TransactionMode.READ_WRITE)

        await tx.execute_sql("INSERT INTO users (username) VALUES ('janedoe')")

        assert fake_spanner.bodies("executeSql") == [{
            "transaction": {"id": tx.id},
            "sql": "INSERT INTO users (username) VALUES ('janedoe')",
            "seqno": "0",
        }]
        await tx.rollback()

    async def test_seqno_increases_even_when_statements_fail(self, session, fake_spanner):
        fake_spanner.execute_results = [
            {},
            (400, "syntax error"),
            {},
            (500, "internal"),
            {},
        ]
        tx = await session.begin_transaction(TransactionMode.READ_WRITE)

        for i in range(5):
            if i in (1, 3):
                with pytest.raises(RemoteError):
                    await tx.execute_sql(f"STATEMENT {i}")
            else:
                await tx.execute_sql(f"STATEMENT {i}")

        assert [b["seqno"] for b in fake_spanner.bodies("executeSql")] == ["0", "1", "2", "3", "4"]
        assert tx.seqno == 5
        assert tx.is_active
        await tx.commit()

    async def test_decodes_rows(self, session, fake_spanner):
        fake_spanner.execute_results = [
            result_set(
                [("username", "STRING"), ("last_login", "TIMESTAMP")],
                [["janedoe", "2024-01-01T00:00:00.000Z"], ["bobsmith", None]],
            )
        ]

        async with session.transaction(TransactionMode.READ_ONLY) as tx:
            result = await tx.execute_sql("SELECT username, last_login FROM users")

        assert result[0]["username"] == Value.string("janedoe")
        assert result[0]["last_login"] == Value.timestamp(
            datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
        )
        assert result[1]["last_login"] == Value.null()
        assert result[1]["no_such_column"] is None

    async def test_execute_update_returns_row_count(self, session, fake_spanner):
        fake_spanner.execute_results = [{"stats": {"rowCountExact": "2"}}]

        async with session.transaction() as tx:
            assert await tx.execute_update("DELETE FROM users WHERE TRUE") == 2


@pytest.mark.asyncio
class TestStateMachine:
    async def test_commit(self, session, fake_spanner):
        tx = await session.begin_transaction(TransactionMode.READ_WRITE)

        await tx.commit()

        assert tx.state is TransactionState.COMMITTED
        assert fake_spanner.bodies("commit") == [{"transactionId": tx.id}]
        assert tx.commit_timestamp == datetime.datetime(
            2024, 1, 1, 0, 0, 0, 123456, tzinfo=datetime.timezone.utc
        )

    async def test_commit_twice_is_rejected(self, session, fake_spanner):
        tx = await session.begin_transaction(TransactionMode.READ_WRITE)
        await tx.commit()

        with pytest.raises(UsageError):
            await tx.commit()
        assert len(fake_spanner.bodies("commit")) == 1

    @pytest.mark.parametrize("terminate", ["commit", "rollback"])
    async def test_execute_after_end_is_rejected(self, session, fake_spanner, terminate):
        tx = await session.begin_transaction(TransactionMode.READ_WRITE)
        await getattr(tx, terminate)()

        with pytest.raises(UsageError):
            await tx.execute_sql("SELECT 1")
        assert fake_spanner.bodies("executeSql") == []
        assert tx.seqno == 0

    async def test_execute_after_finish_is_rejected(self, session):
        tx = await session.begin_transaction(TransactionMode.READ_ONLY)
        tx.finish()

        assert tx.state is TransactionState.FINISHED
        with pytest.raises(UsageError):
            await tx.execute_sql("SELECT 1")

    async def test_finish_does_not_contact_server(self, session, fake_spanner):
        tx = await session.begin_transaction(TransactionMode.READ_ONLY)
        before = len(fake_spanner.requests)

        tx.finish()

        assert len(fake_spanner.requests) == before

    async def test_commit_on_read_only_is_rejected(self, session):
        tx = await session.begin_transaction(TransactionMode.READ_ONLY)

        with pytest.raises(UsageError):
            await tx.commit()
        assert tx.is_active
        tx.finish()

    async def test_finish_on_read_write_is_rejected(self, session):
        tx = await session.begin_transaction(TransactionMode.READ_WRITE)

        with pytest.raises(UsageError):
            tx.finish()
        await tx.rollback()

    @pytest.mark.parametrize("mode", list(TransactionMode))
    async def test_rollback_in_either_mode(self, session, fake_spanner, mode):
        tx = await session.begin_transaction(mode)

        await tx.rollback()

        assert tx.state is TransactionState.ROLLED_BACK
        assert fake_spanner.bodies("rollback") == [{"transactionId": tx.id}]

    async def test_failed_commit_leaves_outcome_unknown(self, session, fake_spanner):
        fake_spanner.failures["commit"] = (503, "unavailable")
        tx = await session.begin_transaction(TransactionMode.READ_WRITE)

        with pytest.raises(RemoteError) as exc_info:
            await tx.commit()

        assert exc_info.value.status == 503
        assert "unavailable" in str(exc_info.value)
        assert tx.state is TransactionState.OUTCOME_UNKNOWN
        with pytest.raises(UsageError):
            await tx.commit()
        assert len(fake_spanner.bodies("commit")) == 1

    async def test_failed_rollback_stays_active(self, session, fake_spanner):
        fake_spanner.failures["rollback"] = (500, "boom")
        tx = await session.begin_transaction(TransactionMode.READ_WRITE)

        with pytest.raises(RemoteError):
            await tx.rollback()
        assert tx.is_active

        del fake_spanner.failures["rollback"]
        await tx.rollback()
        assert tx.state is TransactionState.ROLLED_BACK


class TestLeakDetection:
    def test_active_transaction_logs_when_collected(self, caplog):
        tx = Transaction(None, "sessions/s1", "tx-leaked", TransactionMode.READ_WRITE)

        with caplog.at_level(logging.ERROR, logger="spanner_client.transaction"):
            del tx
            gc.collect()

        assert "tx-leaked" in caplog.text

    def test_finished_transaction_is_silent(self, caplog):
        tx = Transaction(None, "sessions/s1", "tx-done", TransactionMode.READ_ONLY)
        tx.finish()

        with caplog.at_level(logging.ERROR, logger="spanner_client.transaction"):
            del tx
            gc.collect()

        assert "tx-done" not in caplog.text
