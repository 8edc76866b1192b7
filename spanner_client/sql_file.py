"""
Spanner Client SQL File Loading

Splits batches of DDL/DML text into individual statements.

@version 1.0.0
@author spanner-client developers
"""

from __future__ import annotations

import os
from typing import List, Union

from .types import SqlFileNotFoundError


def split_statements(text: str) -> List[str]:
    """
    Split SQL text on top-level semicolons.

    Semicolons inside single-quoted strings, backtick-quoted identifiers
    and ``--`` line comments do not end a statement. A quote or backtick
    preceded by a backslash is escaped, and quotes inside a comment are
    ignored. Statements are stripped and empty ones dropped; a final
    statement without a semicolon is kept.

    Example:
        >>> split_statements("INSERT INTO t VALUES ('a;b'); -- c;d\\nSELECT 1")
        ["INSERT INTO t VALUES ('a;b')", '-- c;d\\nSELECT 1']
    """
    in_backticks = False
    in_quotes = False
    in_comment = False
    start = 0
    statements: List[str] = []

    for index, char in enumerate(text):
        escaped = index > 0 and text[index - 1] == "\\"

        if in_comment and char != "\n":
            continue

        if char == "`" and not in_quotes and not escaped:
            in_backticks = not in_backticks
        elif char == "'" and not in_backticks and not escaped:
            in_quotes = not in_quotes
        elif char == "\n":
            in_comment = False
        elif char == ";" and not (in_backticks or in_quotes or in_comment):
            statements.append(text[start:index].strip())
            start = index + 1
        elif char == "-" and not (in_backticks or in_quotes) and text[index + 1:index + 2] == "-":
            in_comment = True

    if start < len(text):
        statements.append(text[start:].strip())

    return [s for s in statements if s]


def read_sql_statements(path: Union[str, "os.PathLike[str]"]) -> List[str]:
    """
    Read a UTF-8 SQL file and split it into statements.

    Raises:
        SqlFileNotFoundError: If the file does not exist or is unreadable
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            contents = f.read()
    except OSError as e:
        raise SqlFileNotFoundError(os.fspath(path)) from e
    return split_statements(contents)
