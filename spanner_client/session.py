"""
Spanner Session Support

@version 1.0.0
@author spanner-client developers
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from .transaction import Transaction, TransactionMode
from .types import RemoteError, UsageError

if TYPE_CHECKING:
    from .client import SpannerClient

logger = logging.getLogger(__name__)


class Session:
    """
    A server-side session; runs transactions one after another.

    Sessions come from ``Database.create_session()`` or, preferably, the
    ``Database.session()`` context manager. A session garbage-collected
    while still open is logged as a leak; the server reaps it eventually.
    """

    def __init__(self, client: "SpannerClient", database: str, name: str):
        self._client = client
        self._closed = False
        self.database = database
        self.name = name
        self._transaction: Optional[Transaction] = None

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise UsageError(f"Session {self.name} is closed")

    async def begin_transaction(self, mode: TransactionMode) -> Transaction:
        """
        Begin a transaction in the given mode.

        Raises:
            UsageError: If the session is closed
            RemoteError: If the server rejects the request
        """
        self._check_open()

        if self._transaction is not None and self._transaction.is_active:
            logger.warning(
                "Session %s: beginning a transaction while %s is still active",
                self.name, self._transaction.id,
            )

        options = {"readWrite": {}} if mode is TransactionMode.READ_WRITE else {"readOnly": {}}
        data = await self._client._request(
            "POST", f"{self.name}:beginTransaction", {"options": options}
        )

        transaction_id = data.get("id")
        if not transaction_id:
            raise RemoteError(f"Missing transaction id from begin transaction response: {data}")

        self._transaction = Transaction(self._client, self.name, transaction_id, mode)
        return self._transaction

    @asynccontextmanager
    async def transaction(
        self,
        mode: TransactionMode = TransactionMode.READ_WRITE,
    ) -> AsyncIterator[Transaction]:
        """
        Run a block inside a transaction.

        On normal exit a read-write transaction is committed and a
        read-only one finished. If the block raises or is cancelled, a
        read-write transaction is rolled back and a read-only one finished. A
        transaction already terminated inside the block is left alone.

        Example:
            async with session.transaction() as tx:
                await tx.execute_sql("INSERT INTO users (id, name) VALUES (1, 'Alice')")
                await tx.execute_sql("INSERT INTO logs (msg) VALUES ('User created')")
        """
        tx = await self.begin_transaction(mode)
        try:
            yield tx
        except BaseException:
            if tx.is_active and mode is TransactionMode.READ_ONLY:
                tx.finish()
            elif tx.is_active:
                try:
                    await tx.rollback()
                except Exception:
                    logger.exception("Rollback of transaction %s failed", tx.id)
            raise

        if tx.is_active:
            if mode is TransactionMode.READ_WRITE:
                await tx.commit()
            else:
                tx.finish()

    async def close(self) -> None:
        """
        Delete the session on the server.

        Raises:
            UsageError: If the session was already closed
        """
        self._check_open()
        await self._client._request("DELETE", self.name)
        self._closed = True
        logger.debug("Closed session %s", self.name)

    def __del__(self) -> None:
        if not getattr(self, "_closed", True):
            logger.error("Session %s garbage-collected without close()", self.name)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Session({self.name!r}, {state})"
