from __future__ import annotations

# sqlite_gateway/errors.py
import sqlite3
from typing import Optional

# 出现这些片段的 OperationalError 视为连接/文件层面的问题，而非语句本身的问题
_CONNECTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "unable to open database",
    "disk i/o error",
    "readonly database",
    "attempt to write a readonly",
)


class DatabaseError(Exception):
    """All errors leaving this package are (subclasses of) DatabaseError.

    Carries the logical operation name, the offending SQL text and the
    underlying cause, so callers never have to look at raw driver errors.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        sql: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.message = message
        self.sql = sql
        self.cause = cause
        self.details = str(cause) if cause is not None else None
        self.phase = None  # set by the initializer when raised inside a phase
        self.batch_index = None  # set by run_batch: index of the failing request

    def __str__(self) -> str:
        out = f"{self.message}"
        if self.operation:
            out += f" [operation={self.operation}]"
        if self.details:
            out += f" [details={self.details}]"
        if self.sql:
            out += f" [sql={' '.join(self.sql.split())}]"
        return out


class DatabaseConnectionError(DatabaseError):
    """Store unreachable, permanently locked or malformed."""


class TransientIOError(DatabaseConnectionError):
    """Retryable contention while creating/opening the store file."""


class StatementError(DatabaseError):
    """Malformed SQL or parameter/column mismatch."""


class ConstraintViolation(DatabaseError):
    """Primary key, foreign key, unique or not-null violation."""


class ValidationError(DatabaseError):
    """Post-seed integrity check failed."""


class TransactionAbort(DatabaseError):
    """A transaction was rolled back. ``cause`` is the original error."""

    def __init__(
        self,
        operation: str,
        message: str,
        cause: BaseException,
        sql: Optional[str] = None,
        rollback_error: Optional[BaseException] = None,
    ):
        if sql is None and isinstance(cause, DatabaseError):
            sql = cause.sql
        super().__init__(operation, message, sql=sql, cause=cause)
        self.rollback_error = rollback_error

    def __str__(self) -> str:
        out = super().__str__()
        if self.rollback_error is not None:
            out += f" [rollback_error={self.rollback_error}]"
        return out


def is_connection_problem(exc: BaseException) -> bool:
    if isinstance(exc, (sqlite3.OperationalError, sqlite3.DatabaseError)):
        text = str(exc).lower()
        return any(m in text for m in _CONNECTION_MARKERS)
    return False


def wrap_driver_error(operation: str, sql: Optional[str], exc: BaseException) -> DatabaseError:
    """把 sqlite3 原始异常映射到本包的异常体系（不抛出，由调用方 raise ... from exc）。"""
    if isinstance(exc, DatabaseError):
        return exc
    if isinstance(exc, sqlite3.IntegrityError):
        return ConstraintViolation(operation, f"约束冲突: {exc}", sql=sql, cause=exc)
    if is_connection_problem(exc):
        return DatabaseConnectionError(operation, f"数据库不可用: {exc}", sql=sql, cause=exc)
    if isinstance(exc, (sqlite3.OperationalError, sqlite3.ProgrammingError, sqlite3.InterfaceError)):
        return StatementError(operation, f"执行SQL失败: {exc}", sql=sql, cause=exc)
    return DatabaseError(operation, f"数据库错误: {exc}", sql=sql, cause=exc)
