"""
Spanner Transaction Support

@version 1.0.0
@author spanner-client developers
"""

from __future__ import annotations

import datetime
import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .codec import parse_timestamp
from .types import ResultSet, UsageError

if TYPE_CHECKING:
    from .client import SpannerClient

logger = logging.getLogger(__name__)


class TransactionMode(Enum):
    READ_ONLY = "readOnly"
    READ_WRITE = "readWrite"


class TransactionState(Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FINISHED = "finished"
    # Commit request failed; the server may or may not have applied it.
    OUTCOME_UNKNOWN = "outcome_unknown"


class Transaction:
    """
    A read-only or read-write transaction bound to a session.

    Every ``execute_sql`` call carries the next sequence number, starting
    at 0. The counter advances even when the call fails, so a number is
    never reused within the transaction.

    A transaction ends exactly once: ``commit()`` (read-write),
    ``finish()`` (read-only) or ``rollback()`` (either). Any call after
    that raises ``UsageError``. A transaction garbage-collected while still
    active is logged as a leak.

    A failed ``commit()`` is never retried: the transaction moves to
    ``OUTCOME_UNKNOWN`` because the server may have applied the commit
    even though the client saw an error.

    Example:
        tx = await session.begin_transaction(TransactionMode.READ_WRITE)
        try:
            await tx.execute_sql("UPDATE users SET active = true WHERE id = 1")
        except Exception:
            await tx.rollback()
            raise
        await tx.commit()
    """

    def __init__(
        self,
        client: "SpannerClient",
        session_name: str,
        transaction_id: str,
        mode: TransactionMode,
    ):
        self._client = client
        self._session_name = session_name
        self._id = transaction_id
        self._mode = mode
        self._state = TransactionState.ACTIVE
        self._seqno = 0
        self.commit_timestamp: Optional[datetime.datetime] = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def mode(self) -> TransactionMode:
        return self._mode

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def seqno(self) -> int:
        """Sequence number the next statement will carry."""
        return self._seqno

    @property
    def is_active(self) -> bool:
        """Check if transaction is active."""
        return self._state is TransactionState.ACTIVE

    def _check_active(self) -> None:
        if self._state is not TransactionState.ACTIVE:
            raise UsageError(f"Transaction {self._id} is {self._state.value}")

    async def execute_sql(self, sql: str) -> ResultSet:
        """
        Execute a statement within the transaction.

        Args:
            sql: SQL statement

        Returns:
            ResultSet with decoded rows and stats

        Raises:
            UsageError: If the transaction is no longer active
            RemoteError: If the server rejects the statement
        """
        self._check_active()

        seqno = self._seqno
        self._seqno += 1

        payload = {
            "transaction": {"id": self._id},
            "sql": sql,
            "seqno": str(seqno),
        }
        data = await self._client._request("POST", f"{self._session_name}:executeSql", payload)
        return ResultSet.from_json(data)

    async def execute_update(self, sql: str) -> int:
        """Execute a DML statement and return the number of rows affected."""
        result = await self.execute_sql(sql)
        return result.rows_affected

    async def commit(self) -> None:
        """
        Commit a read-write transaction.

        Raises:
            UsageError: If the transaction is read-only or no longer active
            RemoteError: If the commit failed; the outcome is then unknown
        """
        self._check_active()
        if self._mode is not TransactionMode.READ_WRITE:
            raise UsageError("Read-only transactions are ended with finish(), not commit()")

        try:
            data = await self._client._request(
                "POST", f"{self._session_name}:commit", {"transactionId": self._id}
            )
        except Exception:
            self._state = TransactionState.OUTCOME_UNKNOWN
            logger.error("Commit of transaction %s failed; outcome unknown", self._id)
            raise

        self._state = TransactionState.COMMITTED
        commit_timestamp = data.get("commitTimestamp")
        if commit_timestamp:
            self.commit_timestamp = parse_timestamp(commit_timestamp)

    async def rollback(self) -> None:
        """
        Roll back the transaction.

        If the request fails the transaction stays active, so rollback can
        be attempted again.
        """
        self._check_active()
        await self._client._request(
            "POST", f"{self._session_name}:rollback", {"transactionId": self._id}
        )
        self._state = TransactionState.ROLLED_BACK

    def finish(self) -> None:
        """Mark a read-only transaction as done; the server is not contacted."""
        self._check_active()
        if self._mode is not TransactionMode.READ_ONLY:
            raise UsageError("Read-write transactions must be committed or rolled back")
        self._state = TransactionState.FINISHED

    def __del__(self) -> None:
        if getattr(self, "_state", None) is TransactionState.ACTIVE:
            logger.error("Transaction %s garbage-collected without commit, rollback or finish", self._id)

    def __repr__(self) -> str:
        return f"Transaction({self._id!r}, {self._mode.name}, {self._state.value}, seqno={self._seqno})"
