"""
Spanner Client Value Codec

Schema-driven conversion between JSON wire scalars and typed values.

Wire conventions:
- INT64 travels as a decimal string so 64-bit values survive JSON decoders
  that only have doubles.
- FLOAT64/FLOAT32 travel as numbers, or as "NaN", "Infinity", "-Infinity".
- TIMESTAMP travels as RFC 3339 with a literal "Z" offset.
- DATE travels as an RFC 3339 full-date ("2024-01-31").
- BYTES travel as standard base64 (RFC 4648 section 4).

@version 1.0.0
@author spanner-client developers
"""

from __future__ import annotations

import base64
import binascii
import datetime
import math
import re
from typing import Any, Callable, Dict, List, Sequence, Union

from .types import (
    ColumnSchema,
    MalformedValueError,
    Row,
    SpannerType,
    TypeCode,
    UnsupportedTypeError,
    Value,
)

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_INT64_RE = re.compile(r"[+-]?[0-9]+")
_TIMESTAMP_RE = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})(?:\.([0-9]{1,9}))?Z"
)
_DATE_RE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")

_FLOAT_SENTINELS = {
    "NaN": math.nan,
    "Infinity": math.inf,
    "-Infinity": -math.inf,
}


def _require_str(raw: Any, code: TypeCode) -> str:
    if not isinstance(raw, str):
        raise MalformedValueError(f"Expected string for {code.value}, got {raw!r}")
    return raw


def _decode_bool(raw: Any) -> Value:
    if not isinstance(raw, bool):
        raise MalformedValueError(f"Expected boolean for BOOL, got {raw!r}")
    return Value.bool(raw)


def _decode_int64(raw: Any) -> Value:
    text = _require_str(raw, TypeCode.INT64)
    if not _INT64_RE.fullmatch(text):
        raise MalformedValueError(f"Invalid INT64 value: {text!r}")
    number = int(text)
    if number < INT64_MIN or number > INT64_MAX:
        raise MalformedValueError(f"INT64 value out of range: {text!r}")
    return Value.int64(number)


def _parse_float(raw: Any, code: TypeCode) -> float:
    if isinstance(raw, str):
        try:
            return _FLOAT_SENTINELS[raw]
        except KeyError:
            raise MalformedValueError(f"Invalid {code.value} value: {raw!r}")
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise MalformedValueError(f"Expected number for {code.value}, got {raw!r}")
    try:
        return float(raw)
    except OverflowError:
        raise MalformedValueError(f"{code.value} value out of range: {raw!r}")


def _decode_float64(raw: Any) -> Value:
    return Value.float64(_parse_float(raw, TypeCode.FLOAT64))


def _decode_float32(raw: Any) -> Value:
    return Value.float32(_parse_float(raw, TypeCode.FLOAT32))


def parse_timestamp(text: str) -> datetime.datetime:
    """
    Parse an RFC 3339 UTC timestamp into an aware datetime.

    Fractional seconds beyond microseconds are truncated.
    """
    match = _TIMESTAMP_RE.fullmatch(text)
    if not match:
        raise MalformedValueError(f"Invalid RFC 3339 timestamp: {text!r}")

    year, month, day, hour, minute, second, fraction = match.groups()
    micros = int((fraction or "0").ljust(6, "0")[:6])
    try:
        return datetime.datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second), micros,
            tzinfo=datetime.timezone.utc,
        )
    except ValueError as e:
        raise MalformedValueError(f"Invalid RFC 3339 timestamp: {text!r} ({e})")


def format_timestamp(value: datetime.datetime) -> str:
    """Render a datetime as RFC 3339 with microseconds and a "Z" offset."""
    if value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc)
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}.{value.microsecond:06d}Z"
    )


def _decode_timestamp(raw: Any) -> Value:
    return Value.timestamp(parse_timestamp(_require_str(raw, TypeCode.TIMESTAMP)))


def _decode_date(raw: Any) -> Value:
    text = _require_str(raw, TypeCode.DATE)
    match = _DATE_RE.fullmatch(text)
    if not match:
        # Older servers send dates as full timestamps.
        return Value.date(parse_timestamp(text).date())

    year, month, day = match.groups()
    try:
        return Value.date(datetime.date(int(year), int(month), int(day)))
    except ValueError as e:
        raise MalformedValueError(f"Invalid DATE value: {text!r} ({e})")


def _decode_string(raw: Any) -> Value:
    return Value.string(_require_str(raw, TypeCode.STRING))


def _decode_bytes(raw: Any) -> Value:
    text = _require_str(raw, TypeCode.BYTES)
    try:
        return Value.bytes(base64.b64decode(text, validate=True))
    except (binascii.Error, ValueError) as e:
        raise MalformedValueError(f"Invalid base64 BYTES value: {text!r} ({e})")


_DECODERS: Dict[TypeCode, Callable[[Any], Value]] = {
    TypeCode.BOOL: _decode_bool,
    TypeCode.INT64: _decode_int64,
    TypeCode.FLOAT64: _decode_float64,
    TypeCode.FLOAT32: _decode_float32,
    TypeCode.TIMESTAMP: _decode_timestamp,
    TypeCode.DATE: _decode_date,
    TypeCode.STRING: _decode_string,
    TypeCode.BYTES: _decode_bytes,
}

SUPPORTED_TYPE_CODES = frozenset(_DECODERS)


def decode_value(raw: Any, column_type: Union[SpannerType, TypeCode]) -> Value:
    """
    Decode one wire scalar as the given column type.

    Args:
        raw: JSON-decoded scalar (``None`` for a wire null)
        column_type: Declared column type

    Returns:
        Typed Value; NULL for a wire null whatever the declared type

    Raises:
        UnsupportedTypeError: The type has no decoding rule
        MalformedValueError: The scalar does not parse as the type
    """
    code = column_type.code if isinstance(column_type, SpannerType) else column_type
    if raw is None:
        return Value.null()

    decoder = _DECODERS.get(code)
    if decoder is None:
        raise UnsupportedTypeError(f"Unsupported type code {code.value}")
    return decoder(raw)


def _encode_float(value: float) -> Any:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


def encode_value(value: Value) -> Any:
    """Render a typed Value back into its JSON wire scalar."""
    code = value.code
    if code is None:
        return None
    if code in (TypeCode.STRING, TypeCode.BOOL):
        return value.value
    if code is TypeCode.INT64:
        return str(value.value)
    if code in (TypeCode.FLOAT64, TypeCode.FLOAT32):
        return _encode_float(value.value)
    if code is TypeCode.TIMESTAMP:
        return format_timestamp(value.value)
    if code is TypeCode.DATE:
        return value.value.isoformat()
    if code is TypeCode.BYTES:
        return base64.b64encode(value.value).decode("ascii")
    raise UnsupportedTypeError(f"Unsupported type code {code.value}")


def decode_rows(schema: ColumnSchema, raw_rows: Sequence[Sequence[Any]]) -> List[Row]:
    """
    Decode raw row arrays against one shared schema.

    Every returned Row references ``schema`` itself. A row whose width
    differs from the schema fails the whole call.
    """
    types = [f.type for f in schema.fields]
    rows = []
    for row_number, raw_row in enumerate(raw_rows):
        if not isinstance(raw_row, (list, tuple)) or len(raw_row) != len(types):
            width = len(raw_row) if isinstance(raw_row, (list, tuple)) else "non-list"
            raise MalformedValueError(
                f"Row {row_number} has {width} values, schema has {len(types)} columns"
            )
        rows.append(Row([decode_value(raw, t) for raw, t in zip(raw_row, types)], schema))
    return rows
