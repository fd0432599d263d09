"""
Non-blocking calling convention: the same operations, awaited.

Each call runs the blocking implementation in a worker thread, so the
ordering seen by one awaiting caller is identical to the blocking API.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

from .batch import BatchItem, run_batch
from .config import Settings
from .db import ConnectionFactory
from .gateway import ExecutionGateway, QueryResult, RequestLike
from .initializer import InitReport, initialize, reset_database
from .transaction import Transaction, run_in_transaction

T = TypeVar("T")


class AsyncExecutionGateway:
    def __init__(self, location: str, factory: ConnectionFactory | None = None):
        self._sync = ExecutionGateway(location, factory=factory)

    async def execute_non_query(self, request: RequestLike, params: Optional[Mapping[str, Any]] = None) -> int:
        return await asyncio.to_thread(self._sync.execute_non_query, request, params)

    async def execute_scalar(self, request: RequestLike, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await asyncio.to_thread(self._sync.execute_scalar, request, params)

    async def execute_query(self, request: RequestLike, params: Optional[Mapping[str, Any]] = None) -> QueryResult:
        return await asyncio.to_thread(self._sync.execute_query, request, params)

    async def fetch_rows(self, request: RequestLike, params: Optional[Mapping[str, Any]] = None) -> list[tuple]:
        """Drains an execute_reader cursor in the worker thread."""

        def _drain():
            with self._sync.execute_reader(request, params) as reader:
                return [tuple(r) for r in reader]

        return await asyncio.to_thread(_drain)


async def run_in_transaction_async(
    location: str, action: Callable[[Transaction], T], factory: ConnectionFactory | None = None
) -> T:
    # action 在工作线程里同步执行，整个事务在同一线程内完成
    return await asyncio.to_thread(run_in_transaction, location, action, factory)


async def run_batch_async(
    location: str, requests: Iterable[BatchItem], factory: ConnectionFactory | None = None
) -> int:
    return await asyncio.to_thread(run_batch, location, list(requests), factory)


# 构造 SchemaInitializer 可能读取配置文件并创建目录，同样放到工作线程
async def initialize_async(location: Optional[str] = None, settings: Optional[Settings] = None) -> InitReport:
    return await asyncio.to_thread(initialize, location, settings)


async def reset_database_async(location: Optional[str] = None, settings: Optional[Settings] = None) -> InitReport:
    return await asyncio.to_thread(reset_database, location, settings)
