from __future__ import annotations

# sqlite_gateway/db.py
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol

from .errors import DatabaseConnectionError, TransientIOError, is_connection_problem

logger = logging.getLogger(__name__)


class Driver(Protocol):
    """Minimal capability set a store binding has to provide.

    Only ``connect`` is binding specific; statements and BEGIN/COMMIT/ROLLBACK
    go through the DB-API connection it returns.
    """

    def connect(self, location: str, create: bool) -> sqlite3.Connection: ...


class SqliteDriver:
    def connect(self, location: str, create: bool) -> sqlite3.Connection:
        # mode=rw 不会隐式创建文件；只有 FileEnsure 阶段使用 rwc
        uri = f"{Path(location).resolve().as_uri()}?mode={'rwc' if create else 'rw'}"
        conn = sqlite3.connect(uri, uri=True, check_same_thread=False, isolation_level=None)
        try:
            # 读取文件头，尽早发现损坏/非数据库文件
            conn.execute("PRAGMA schema_version").fetchone()
            conn.execute("PRAGMA foreign_keys = ON;")
        except BaseException:
            conn.close()
            raise
        conn.row_factory = sqlite3.Row
        return conn


class ConnectionFactory:
    def __init__(self, driver: Driver | None = None):
        self.driver = driver or SqliteDriver()

    def open(self, location: str, create: bool = False) -> sqlite3.Connection:
        """
        打开到 location 的连接，所有权交给调用方（调用方负责 close，推荐用 connect()）。
        锁竞争/权限/无法打开 -> TransientIOError；损坏或其它 -> DatabaseConnectionError。
        """
        if not location or not str(location).strip():
            raise DatabaseConnectionError("open", "数据库位置为空")
        try:
            return self.driver.connect(str(location), create)
        except (PermissionError, BlockingIOError, InterruptedError) as e:
            raise TransientIOError("open", f"打开数据库失败: {location}", cause=e) from e
        except sqlite3.Error as e:
            if is_connection_problem(e):
                raise TransientIOError("open", f"打开数据库失败: {location}", cause=e) from e
            raise DatabaseConnectionError("open", f"数据库文件不可用: {location}", cause=e) from e
        except (OSError, ValueError) as e:
            raise DatabaseConnectionError("open", f"数据库位置不可用: {location}", cause=e) from e

    @contextmanager
    def connect(self, location: str, create: bool = False) -> Iterator[sqlite3.Connection]:
        conn = self.open(location, create=create)
        try:
            yield conn
        finally:
            conn.close()


_default_factory = ConnectionFactory()


def default_factory() -> ConnectionFactory:
    return _default_factory

