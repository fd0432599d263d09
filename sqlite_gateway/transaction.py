from __future__ import annotations

# sqlite_gateway/transaction.py
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping, Optional, TypeVar, Union

from .db import ConnectionFactory, default_factory
from .errors import DatabaseConnectionError, StatementError, TransactionAbort, wrap_driver_error
from .gateway import ExecutionGateway, QueryResult, RequestLike, RowReader

logger = logging.getLogger(__name__)

T = TypeVar("T")
Target = Union[str, sqlite3.Connection]


class Transaction:
    """Handle bound to the connection that owns the open transaction."""

    def __init__(self, conn: sqlite3.Connection, gateway: ExecutionGateway):
        self._conn = conn
        self._gateway = gateway
        self._open = True

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @property
    def active(self) -> bool:
        return self._open

    def _check(self, operation: str) -> None:
        if not self._open:
            raise StatementError(operation, "事务已结束，不能继续使用该事务句柄")

    def execute_non_query(self, request: RequestLike, params: Optional[Mapping[str, Any]] = None) -> int:
        self._check("execute_non_query")
        return self._gateway.execute_non_query(request, params, conn=self._conn)

    def execute_scalar(self, request: RequestLike, params: Optional[Mapping[str, Any]] = None) -> Any:
        self._check("execute_scalar")
        return self._gateway.execute_scalar(request, params, conn=self._conn)

    def execute_query(self, request: RequestLike, params: Optional[Mapping[str, Any]] = None) -> QueryResult:
        self._check("execute_query")
        return self._gateway.execute_query(request, params, conn=self._conn)

    def execute_reader(self, request: RequestLike, params: Optional[Mapping[str, Any]] = None) -> RowReader:
        self._check("execute_reader")
        return self._gateway.execute_reader(request, params, conn=self._conn)

    def cursor(self) -> sqlite3.Cursor:
        self._check("cursor")
        return self._conn.cursor()


class TransactionScope:
    """
    BEGIN -> action(tx) -> COMMIT；action 抛错则 ROLLBACK 并抛出 TransactionAbort（cause 为原始异常）。
    target 可以是数据库位置（自行打开并关闭连接），也可以是已有连接（复用，不关闭）。
    """

    def __init__(self, target: Target, factory: ConnectionFactory | None = None):
        self.target = target
        self.factory = factory or default_factory()

    @contextmanager
    def _acquire(self) -> Iterator[sqlite3.Connection]:
        if isinstance(self.target, sqlite3.Connection):
            yield self.target
            return
        try:
            conn = self.factory.open(self.target)
        except DatabaseConnectionError as e:
            raise DatabaseConnectionError(
                "transaction", f"数据库不可用: {self.target}", cause=e
            ) from e
        try:
            yield conn
        finally:
            conn.close()

    def _gateway(self) -> ExecutionGateway:
        location = self.target if isinstance(self.target, str) else ""
        return ExecutionGateway(location, factory=self.factory)

    @staticmethod
    def _begin(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            raise StatementError("begin", "该连接上已有未结束的事务")
        try:
            conn.execute("BEGIN")
        except sqlite3.Error as e:
            raise wrap_driver_error("begin", "BEGIN", e) from e

    @staticmethod
    def _rollback_and_raise(conn: sqlite3.Connection, exc: Exception, operation: str) -> None:
        rollback_error = None
        if conn.in_transaction:
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error as rb:
                rollback_error = wrap_driver_error("rollback", "ROLLBACK", rb)
        if rollback_error is not None:
            logger.error("transaction rollback failed: cause=%s rollback_error=%s", exc, rollback_error)
            raise TransactionAbort(
                operation,
                f"事务执行失败且回滚失败: {exc}",
                cause=exc,
                rollback_error=rollback_error,
            ) from exc
        logger.warning("transaction rolled back: %s", exc)
        raise TransactionAbort(operation, f"事务执行失败，已回滚: {exc}", cause=exc) from exc

    @contextmanager
    def begin(self) -> Iterator[Transaction]:
        with self._acquire() as conn:
            self._begin(conn)
            tx = Transaction(conn, self._gateway())
            try:
                yield tx
            except Exception as e:
                tx._open = False
                self._rollback_and_raise(conn, e, "transaction")
            except BaseException:
                # KeyboardInterrupt 等：尽力回滚后原样抛出
                tx._open = False
                if conn.in_transaction:
                    try:
                        conn.execute("ROLLBACK")
                    except sqlite3.Error as rb:
                        logger.error("rollback after interrupt failed: %s", rb)
                raise
            else:
                tx._open = False
                try:
                    conn.execute("COMMIT")
                except sqlite3.Error as e:
                    err = wrap_driver_error("commit", "COMMIT", e)
                    self._rollback_and_raise(conn, err, "commit")

    def run(self, action: Callable[[Transaction], T]) -> T:
        with self.begin() as tx:
            return action(tx)


def run_in_transaction(
    target: Target,
    action: Callable[[Transaction], T],
    factory: ConnectionFactory | None = None,
) -> T:
    return TransactionScope(target, factory=factory).run(action)
