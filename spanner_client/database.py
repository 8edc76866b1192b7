"""
Spanner Instance and Database Handles

@version 1.0.0
@author spanner-client developers
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Dict, List, Optional

from .session import Session
from .types import RemoteError

if TYPE_CHECKING:
    from .client import SpannerClient

logger = logging.getLogger(__name__)


class Instance:
    """Handle for a Spanner instance."""

    def __init__(self, client: "SpannerClient", project: str, instance: str):
        self._client = client
        self.project = project
        self.instance_id = instance

    @property
    def name(self) -> str:
        return f"projects/{self.project}/instances/{self.instance_id}"

    def database(self, database: str) -> "Database":
        return Database(self._client, f"{self.name}/databases/{database}")

    async def create_database(
        self,
        database: str,
        ddl_statements: Optional[List[str]] = None,
        *,
        proto_descriptors: Optional[str] = None,
    ) -> "Database":
        """
        Create a database and wait for the operation to finish.

        Args:
            database: New database id
            ddl_statements: Extra DDL run as part of creation, e.g. the
                output of ``read_sql_statements()``
            proto_descriptors: Base64 FileDescriptorSet for PROTO columns

        Returns:
            Database handle
        """
        payload = {
            "createStatement": f"CREATE DATABASE `{database}`",
            "extraStatements": ddl_statements or [],
            "databaseDialect": "GOOGLE_STANDARD_SQL",
        }
        if proto_descriptors is not None:
            payload["protoDescriptors"] = proto_descriptors

        operation = await self._client._request("POST", f"{self.name}/databases", payload)
        await self._client.wait_for_operation(operation)
        logger.info("Created database %s/databases/%s", self.name, database)
        return self.database(database)

    def __repr__(self) -> str:
        return f"Instance({self.name!r})"


class Database:
    """
    Handle for a Spanner database; creates sessions.

    Example:
        async with database.session() as session:
            async with session.transaction(TransactionMode.READ_WRITE) as tx:
                await tx.execute_sql("INSERT INTO users (id) VALUES (1)")
    """

    def __init__(self, client: "SpannerClient", name: str):
        self._client = client
        self.name = name

    async def create_session(self, labels: Optional[Dict[str, str]] = None) -> Session:
        """
        Create a server-side session.

        The caller owns the session and must ``close()`` it; prefer
        ``session()`` which does so on every exit path.
        """
        payload = {"session": {"labels": labels}} if labels else {}
        data = await self._client._request("POST", f"{self.name}/sessions", payload)

        name = data.get("name")
        if not name:
            raise RemoteError(f"Missing session name from create session response: {data}")

        logger.debug("Created session %s", name)
        return Session(self._client, self.name, name)

    @asynccontextmanager
    async def session(self, labels: Optional[Dict[str, str]] = None) -> AsyncIterator[Session]:
        """Create a session that is closed when the block exits."""
        session = await self.create_session(labels)
        try:
            yield session
        finally:
            if not session.is_closed:
                await session.close()

    def __repr__(self) -> str:
        return f"Database({self.name!r})"
