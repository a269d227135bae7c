"""
SQL dialect differences between the two supported backends.

Repository SQL is written once; placeholders, case-insensitive matching and
value encoding go through the dialect bound to the active Database.
"""
from __future__ import annotations

import datetime as dt
import json
from typing import Any, Sequence


class Dialect:
    name = ""
    like_operator = "LIKE"
    migrations_dir = ""
    # 按字节序比较文本，两种后端一致
    binary_collation = ""

    def contains(self, column: str, placeholder: str) -> str:
        """Case-insensitive match of `column` against a bound LIKE pattern (escape char `\\`)."""
        return f"{column} {self.like_operator} {placeholder} ESCAPE '\\'"

    def placeholder(self, index: int) -> str:
        raise NotImplementedError

    def bool_literal(self, value: bool) -> str:
        raise NotImplementedError

    def encode_bool(self, value: bool) -> Any:
        raise NotImplementedError

    def encode_timestamp(self, value: dt.datetime) -> Any:
        raise NotImplementedError

    def encode_json_list(self, values: Sequence[str]) -> str:
        # 两种后端都以 TEXT 保存 JSON 数组
        return json.dumps(list(values), ensure_ascii=False)

    def encode(self, value: Any) -> Any:
        """Encode a Python value for binding. bool must be checked before int."""
        if value is None:
            return None
        if isinstance(value, bool):
            return self.encode_bool(value)
        if isinstance(value, dt.datetime):
            return self.encode_timestamp(value)
        if isinstance(value, (list, tuple)):
            return self.encode_json_list(value)
        return value


class PostgresDialect(Dialect):
    name = "postgres"
    like_operator = "ILIKE"
    migrations_dir = "postgres"
    binary_collation = ' COLLATE "C"'

    def placeholder(self, index: int) -> str:
        return f"${index}"

    def bool_literal(self, value: bool) -> str:
        return "TRUE" if value else "FALSE"

    def encode_bool(self, value: bool) -> Any:
        return bool(value)

    def encode_timestamp(self, value: dt.datetime) -> Any:
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value.astimezone(dt.timezone.utc)


class SqliteDialect(Dialect):
    name = "sqlite"
    like_operator = "LIKE"
    migrations_dir = "sqlite"

    def contains(self, column: str, placeholder: str) -> str:
        # SQLite LIKE 只对 ASCII 忽略大小写；两边先经 unicode_lower（连接时注册）
        return f"unicode_lower({column}) LIKE unicode_lower({placeholder}) ESCAPE '\\'"

    def placeholder(self, index: int) -> str:
        return "?"

    def bool_literal(self, value: bool) -> str:
        return "1" if value else "0"

    def encode_bool(self, value: bool) -> Any:
        return 1 if value else 0

    def encode_timestamp(self, value: dt.datetime) -> Any:
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return value.strftime("%Y-%m-%d %H:%M:%S.%f")
