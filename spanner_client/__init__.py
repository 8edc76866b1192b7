"""
Spanner Python Client

An async Python client for the Cloud Spanner REST API and emulator.

Features:
- Async-first design with aiohttp
- Schema-driven typed row decoding
- Sessions and read-only/read-write transactions with scoped cleanup
- SQL file splitting for DDL/DML batches

Example:
    >>> import asyncio
    >>> from spanner_client import SpannerClient, TransactionMode
    >>>
    >>> async def main():
    ...     async with SpannerClient("http://localhost:9020") as client:
    ...         database = client.database("my-project", "my-instance", "my-db")
    ...         async with database.session() as session:
    ...             async with session.transaction(TransactionMode.READ_ONLY) as tx:
    ...                 result = await tx.execute_sql("SELECT username FROM users")
    ...                 for row in result:
    ...                     print(row["username"])
    >>>
    >>> asyncio.run(main())

@version 1.0.0
@author spanner-client developers
"""

from .client import ClientConfig, SpannerClient
from .codec import decode_rows, decode_value, encode_value
from .database import Database, Instance
from .session import Session
from .sql_file import read_sql_statements, split_statements
from .transaction import Transaction, TransactionMode, TransactionState
from .types import (
    ColumnSchema,
    ConnectionError,
    Field,
    MalformedValueError,
    OperationError,
    RemoteError,
    ResultSet,
    ResultSetStats,
    Row,
    SpannerError,
    SpannerType,
    SqlFileNotFoundError,
    TypeCode,
    UnsupportedTypeError,
    UsageError,
    Value,
)

__version__ = "1.0.0"
__all__ = [
    "SpannerClient",
    "ClientConfig",
    "Instance",
    "Database",
    "Session",
    "Transaction",
    "TransactionMode",
    "TransactionState",
    "ResultSet",
    "ResultSetStats",
    "Row",
    "Value",
    "TypeCode",
    "SpannerType",
    "Field",
    "ColumnSchema",
    "decode_value",
    "encode_value",
    "decode_rows",
    "split_statements",
    "read_sql_statements",
    "SpannerError",
    "ConnectionError",
    "RemoteError",
    "OperationError",
    "MalformedValueError",
    "UnsupportedTypeError",
    "UsageError",
    "SqlFileNotFoundError",
]
