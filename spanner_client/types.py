"""
Spanner Client Type Definitions

@version 1.0.0
@author spanner-client developers
"""

from __future__ import annotations

import datetime
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union


class SpannerError(Exception):
    """Base exception for Spanner client errors."""
    pass


class ConnectionError(SpannerError):
    """Transport-level errors (the request never produced a response)."""
    pass


class RemoteError(SpannerError):
    """
    The server answered with a non-2xx status or an unrecognized body.

    The response body is kept in the message as diagnostic text.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class OperationError(RemoteError):
    """A long-running operation finished with an error status."""
    pass


class MalformedValueError(SpannerError, ValueError):
    """A wire scalar cannot be decoded as its declared type."""
    pass


class UnsupportedTypeError(SpannerError):
    """The declared column type has no decoding rule."""
    pass


class UsageError(SpannerError):
    """A closed session or finished transaction was used."""
    pass


class SqlFileNotFoundError(SpannerError):
    """A SQL statements file could not be read."""

    def __init__(self, path: str):
        super().__init__(f"SQL file not found: {path}")
        self.path = path


class TypeCode(str, Enum):
    """Column type codes as they appear in result set metadata."""
    UNSPECIFIED = "TYPE_CODE_UNSPECIFIED"
    BOOL = "BOOL"
    INT64 = "INT64"
    FLOAT64 = "FLOAT64"
    FLOAT32 = "FLOAT32"
    TIMESTAMP = "TIMESTAMP"
    DATE = "DATE"
    STRING = "STRING"
    BYTES = "BYTES"
    ARRAY = "ARRAY"
    STRUCT = "STRUCT"
    NUMERIC = "NUMERIC"
    JSON = "JSON"
    PROTO = "PROTO"
    ENUM = "ENUM"

    @classmethod
    def from_wire(cls, code: Any) -> "TypeCode":
        try:
            return cls(code)
        except ValueError:
            raise UnsupportedTypeError(f"Unknown type code: {code!r}")


@dataclass(frozen=True)
class SpannerType:
    """
    A column type: a type code plus nested types for ARRAY and STRUCT.
    """
    code: TypeCode
    array_element_type: Optional["SpannerType"] = None
    struct_type: Optional["ColumnSchema"] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "SpannerType":
        if not isinstance(data, dict):
            raise RemoteError(f"Unrecognized type in response metadata: {data!r}")

        element = data.get("arrayElementType")
        struct = data.get("structType")
        return cls(
            code=TypeCode.from_wire(data.get("code")),
            array_element_type=cls.from_json(element) if element is not None else None,
            struct_type=ColumnSchema.from_json(struct) if struct is not None else None,
        )


@dataclass(frozen=True)
class Field:
    """A named column in a row type."""
    name: str
    type: SpannerType

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Field":
        if not isinstance(data, dict):
            raise RemoteError(f"Unrecognized field in response metadata: {data!r}")
        return cls(name=data.get("name", ""), type=SpannerType.from_json(data.get("type")))


class ColumnSchema:
    """
    Ordered column metadata shared by every row of one result set.

    The name index is built once here so that rows never re-derive it.
    Duplicate column names resolve to the first matching column.
    """

    __slots__ = ("fields", "_index")

    def __init__(self, fields: Sequence[Union[Field, Tuple[str, Any]]] = ()):
        normalized = []
        for item in fields:
            if isinstance(item, Field):
                normalized.append(item)
            else:
                name, column_type = item
                if isinstance(column_type, TypeCode):
                    column_type = SpannerType(column_type)
                normalized.append(Field(name, column_type))

        self.fields: Tuple[Field, ...] = tuple(normalized)
        self._index: Dict[str, int] = {}
        for position, column in enumerate(self.fields):
            self._index.setdefault(column.name, position)

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> "ColumnSchema":
        """Build a schema from a ``rowType``/``structType`` object."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise RemoteError(f"Unrecognized row type in response metadata: {data!r}")
        return cls([Field.from_json(f) for f in data.get("fields") or []])

    @property
    def names(self) -> List[str]:
        return [f.name for f in self.fields]

    def index_of(self, name: str) -> Optional[int]:
        return self._index.get(name)

    def __len__(self) -> int:
        return len(self.fields)

    def __getitem__(self, position: int) -> Field:
        return self.fields[position]

    def __iter__(self) -> Iterator[Field]:
        return iter(self.fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnSchema):
            return NotImplemented
        return self.fields == other.fields

    def __hash__(self) -> int:
        return hash(self.fields)

    def __repr__(self) -> str:
        columns = ", ".join(f"{f.name}:{f.type.code.value}" for f in self.fields)
        return f"ColumnSchema({columns})"


@dataclass(frozen=True)
class Value:
    """
    A decoded, typed column value.

    ``code`` is the column type the value was decoded as, or ``None`` for
    NULL. ``value`` holds the native Python payload.
    """
    code: Optional[TypeCode]
    value: Any = None

    @classmethod
    def string(cls, value: str) -> "Value":
        return cls(TypeCode.STRING, value)

    @classmethod
    def int64(cls, value: int) -> "Value":
        return cls(TypeCode.INT64, value)

    @classmethod
    def float64(cls, value: float) -> "Value":
        return cls(TypeCode.FLOAT64, float(value))

    @classmethod
    def float32(cls, value: float) -> "Value":
        return cls(TypeCode.FLOAT32, float(value))

    @classmethod
    def bool(cls, value: bool) -> "Value":
        return cls(TypeCode.BOOL, value)

    @classmethod
    def date(cls, value: datetime.date) -> "Value":
        return cls(TypeCode.DATE, value)

    @classmethod
    def timestamp(cls, value: datetime.datetime) -> "Value":
        return cls(TypeCode.TIMESTAMP, value)

    @classmethod
    def bytes(cls, value: bytes) -> "Value":
        return cls(TypeCode.BYTES, value)

    @classmethod
    def null(cls) -> "Value":
        return cls(None, None)

    @property
    def is_null(self) -> bool:
        return self.code is None

    def is_nan(self) -> bool:
        return isinstance(self.value, float) and math.isnan(self.value)

    def __repr__(self) -> str:
        if self.code is None:
            return "Value(NULL)"
        return f"Value({self.code.value}, {self.value!r})"


class Row:
    """
    A single decoded row.

    Supports positional and name lookup; both return ``None`` rather than
    raising when the position or column does not exist.
    """

    __slots__ = ("_values", "_schema")

    def __init__(self, values: Sequence[Value], schema: ColumnSchema):
        self._values: Tuple[Value, ...] = tuple(values)
        self._schema = schema

    @property
    def schema(self) -> ColumnSchema:
        return self._schema

    def __getitem__(self, key: Union[int, str]) -> Optional[Value]:
        if isinstance(key, str):
            position = self._schema.index_of(key)
            if position is None:
                return None
            return self._values[position]
        if key < 0 or key >= len(self._values):
            return None
        return self._values[key]

    def get(self, key: Union[int, str], default: Any = None) -> Any:
        value = self[key]
        return default if value is None else value

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Value]:
        return iter(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return self._values == other._values and self._schema == other._schema

    def keys(self) -> List[str]:
        return self._schema.names

    def values(self) -> Tuple[Value, ...]:
        return self._values

    def items(self) -> List[Tuple[str, Value]]:
        return list(zip(self._schema.names, self._values))

    def to_dict(self) -> Dict[str, Any]:
        """Column name to native Python value."""
        return {name: value.value for name, value in self.items()}

    def __repr__(self) -> str:
        return f"Row({self.to_dict()})"


@dataclass
class ResultSetStats:
    """Execution statistics attached to a result set."""
    row_count_exact: Optional[int] = None
    query_stats: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> "ResultSetStats":
        if not data:
            return cls()
        count = data.get("rowCountExact")
        try:
            row_count = int(count) if count is not None else None
        except (TypeError, ValueError):
            raise RemoteError(f"Unrecognized rowCountExact in result set stats: {count!r}")
        return cls(
            row_count_exact=row_count,
            query_stats=data.get("queryStats") or {},
        )


@dataclass
class ResultSet:
    """Result of a statement execution."""
    schema: ColumnSchema
    rows: List[Row]
    stats: ResultSetStats = field(default_factory=ResultSetStats)

    @classmethod
    def from_json(cls, data: Any) -> "ResultSet":
        """Decode an ``executeSql`` response body."""
        from .codec import decode_rows

        if not isinstance(data, dict):
            raise RemoteError(f"Unrecognized result set: {data!r}")

        raw_rows = data.get("rows") or []
        if not isinstance(raw_rows, list):
            raise RemoteError(f"Unrecognized rows in result set: {raw_rows!r}")

        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise RemoteError(f"Unrecognized result set metadata: {metadata!r}")
        schema = ColumnSchema.from_json(metadata.get("rowType"))
        return cls(
            schema=schema,
            rows=decode_rows(schema, raw_rows),
            stats=ResultSetStats.from_json(data.get("stats")),
        )

    @property
    def columns(self) -> List[str]:
        return self.schema.names

    @property
    def rows_affected(self) -> int:
        return self.stats.row_count_exact or 0

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __getitem__(self, index: int) -> Row:
        return self.rows[index]

    def to_dicts(self) -> List[Dict[str, Any]]:
        """Convert all rows to dictionaries of native values."""
        return [row.to_dict() for row in self.rows]

    def to_dataframe(self):
        """Convert to pandas DataFrame (requires pandas)."""
        try:
            import pandas as pd
        except ImportError:
            raise ImportError("pandas is required for to_dataframe()")
        return pd.DataFrame(self.to_dicts(), columns=self.columns)
