"""Transactional execution gateway and idempotent schema initializer for a file-backed SQLite store."""
from __future__ import annotations

from .batch import BatchExecutor, run_batch
from .db import ConnectionFactory
from .errors import (
    ConstraintViolation,
    DatabaseConnectionError,
    DatabaseError,
    StatementError,
    TransactionAbort,
    TransientIOError,
    ValidationError,
)
from .gateway import NO_ROWS, ExecutionGateway, ExecutionRequest, QueryResult, RowReader
from .initializer import InitReport, Phase, SchemaInitializer, initialize, reset_database
from .transaction import Transaction, TransactionScope, run_in_transaction

__version__ = "0.1.0"
