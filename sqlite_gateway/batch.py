from __future__ import annotations

# sqlite_gateway/batch.py
import logging
import sqlite3
from typing import Iterable, Union

from .db import ConnectionFactory, default_factory
from .errors import wrap_driver_error
from .gateway import ExecutionRequest, as_request
from .transaction import Transaction, TransactionScope

logger = logging.getLogger(__name__)

BatchItem = Union[ExecutionRequest, str, tuple]


def _to_request(item: BatchItem) -> ExecutionRequest:
    if isinstance(item, tuple):
        sql, params = item
        return ExecutionRequest(sql, params)
    return as_request(item)


def execute_batch(tx: Transaction, requests: Iterable[BatchItem], operation: str = "run_batch") -> int:
    """在已开启的事务里顺序执行；失败时 err.batch_index 指向出错的请求。"""
    reqs = [_to_request(r) for r in requests]
    # 复用同一个 cursor，每条请求重新绑定参数
    cur = tx.cursor()
    total = 0
    try:
        for i, req in enumerate(reqs):
            try:
                cur.execute(req.sql, req.params)
            except sqlite3.Error as e:
                err = wrap_driver_error(operation, req.sql, e)
                err.batch_index = i
                raise err from e
            total += max(cur.rowcount, 0)
    finally:
        cur.close()
    return total


class BatchExecutor:
    """在一个事务里按顺序执行全部请求；任一失败则全部回滚。"""

    def __init__(self, location: str, factory: ConnectionFactory | None = None):
        self.location = location
        self.factory = factory or default_factory()

    def run_batch(self, requests: Iterable[BatchItem], operation: str = "run_batch") -> int:
        reqs = [_to_request(r) for r in requests]
        affected = TransactionScope(self.location, factory=self.factory).run(
            lambda tx: execute_batch(tx, reqs, operation)
        )
        logger.debug("batch committed: %d requests, %d rows", len(reqs), affected)
        return affected


def run_batch(location: str, requests: Iterable[BatchItem], factory: ConnectionFactory | None = None) -> int:
    return BatchExecutor(location, factory=factory).run_batch(requests)
