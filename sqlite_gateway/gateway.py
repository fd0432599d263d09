"""
ExecutionGateway: parameterized statements against the store in four forms
(non-query, scalar, materialized table, streaming reader).

Parameters are always bound by name; SQL text is never assembled from values.
Each call without an explicit ``conn`` opens and releases its own connection.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Mapping, Optional, Union

import pandas as pd

from .db import ConnectionFactory, default_factory
from .errors import DatabaseConnectionError, StatementError, wrap_driver_error

logger = logging.getLogger(__name__)


class _NoRows:
    """Sentinel returned by execute_scalar when the query yields no row."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_ROWS"


NO_ROWS = _NoRows()


def _normalize_name(name: str) -> str:
    # sqlite3 期望的键不带 : @ $ 前缀
    return name[1:] if name[:1] in (":", "@", "$") else name


@dataclass(frozen=True)
class ExecutionRequest:
    sql: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        params = self.params if self.params is not None else {}
        if not isinstance(params, Mapping):
            raise StatementError("bind", "参数必须按名称绑定（传入 dict）", sql=self.sql)
        object.__setattr__(self, "params", {_normalize_name(str(k)): v for k, v in params.items()})


RequestLike = Union[ExecutionRequest, str]


def as_request(request: RequestLike, params: Optional[Mapping[str, Any]] = None) -> ExecutionRequest:
    if isinstance(request, ExecutionRequest):
        if params:
            return ExecutionRequest(request.sql, {**request.params, **params})
        return request
    return ExecutionRequest(request, params or {})


@dataclass
class QueryResult:
    columns: List[str]
    rows: List[tuple]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def column(self, name: str) -> list:
        idx = self.columns.index(name)
        return [r[idx] for r in self.rows]

    def to_dicts(self) -> list[dict]:
        return [dict(zip(self.columns, r)) for r in self.rows]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=self.columns)


class RowReader:
    """Forward-only, not restartable. Closing releases the cursor and, when the
    reader opened its own connection, that connection too."""

    def __init__(self, cursor: sqlite3.Cursor, conn: Optional[sqlite3.Connection], sql: str):
        self._cursor = cursor
        self._conn = conn
        self._sql = sql
        self._closed = False
        self.columns = [d[0] for d in (cursor.description or ())]

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> "RowReader":
        return self

    def __next__(self) -> sqlite3.Row:
        if self._closed:
            raise StopIteration
        try:
            row = self._cursor.fetchone()
        except sqlite3.Error as e:
            self.close()
            raise wrap_driver_error("execute_reader", self._sql, e) from e
        if row is None:
            self.close()
            raise StopIteration
        return row

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        finally:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "RowReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class ExecutionGateway:
    def __init__(self, location: str, factory: ConnectionFactory | None = None):
        self._location = location
        self.factory = factory or default_factory()

    @property
    def location(self) -> str:
        return self._location

    def _open(self, operation: str, sql: str) -> sqlite3.Connection:
        # 锁竞争只在 FileEnsure 阶段按可重试处理，这里统一报告为连接错误
        try:
            return self.factory.open(self._location)
        except DatabaseConnectionError as e:
            raise DatabaseConnectionError(
                operation, f"数据库不可用: {self._location}", sql=sql, cause=e
            ) from e

    @contextmanager
    def _connection(
        self, conn: Optional[sqlite3.Connection], operation: str, sql: str
    ) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        own = self._open(operation, sql)
        try:
            yield own
        finally:
            own.close()

    def execute_non_query(
        self, request: RequestLike, params: Optional[Mapping[str, Any]] = None, *, conn: Optional[sqlite3.Connection] = None
    ) -> int:
        req = as_request(request, params)
        with self._connection(conn, "execute_non_query", req.sql) as c:
            try:
                cur = c.execute(req.sql, req.params)
            except sqlite3.Error as e:
                raise wrap_driver_error("execute_non_query", req.sql, e) from e
            # DDL 的 rowcount 为 -1
            return max(cur.rowcount, 0)

    def execute_scalar(
        self, request: RequestLike, params: Optional[Mapping[str, Any]] = None, *, conn: Optional[sqlite3.Connection] = None
    ) -> Any:
        """第一行第一列；没有行时返回 NO_ROWS（与 0 / NULL 区分）。"""
        req = as_request(request, params)
        with self._connection(conn, "execute_scalar", req.sql) as c:
            try:
                row = c.execute(req.sql, req.params).fetchone()
            except sqlite3.Error as e:
                raise wrap_driver_error("execute_scalar", req.sql, e) from e
        if row is None:
            return NO_ROWS
        return row[0]

    def execute_query(
        self, request: RequestLike, params: Optional[Mapping[str, Any]] = None, *, conn: Optional[sqlite3.Connection] = None
    ) -> QueryResult:
        req = as_request(request, params)
        with self._connection(conn, "execute_query", req.sql) as c:
            try:
                cur = c.execute(req.sql, req.params)
                rows = [tuple(r) for r in cur.fetchall()]
            except sqlite3.Error as e:
                raise wrap_driver_error("execute_query", req.sql, e) from e
            columns = [d[0] for d in (cur.description or ())]
        return QueryResult(columns=columns, rows=rows)

    def execute_reader(
        self, request: RequestLike, params: Optional[Mapping[str, Any]] = None, *, conn: Optional[sqlite3.Connection] = None
    ) -> RowReader:
        req = as_request(request, params)
        owned = self._open("execute_reader", req.sql) if conn is None else None
        c = owned or conn
        try:
            cur = c.execute(req.sql, req.params)
        except sqlite3.Error as e:
            if owned is not None:
                owned.close()
            raise wrap_driver_error("execute_reader", req.sql, e) from e
        return RowReader(cur, owned, req.sql)
