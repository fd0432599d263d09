"""Repository layer: thin SQL helpers over the Users/Departments tables.

Every helper takes an executor (ExecutionGateway or Transaction), so the same
function works standalone or inside run_in_transaction.
"""
from __future__ import annotations

from typing import Any, Callable, Iterable, TypeVar

from ..batch import execute_batch
from ..entities import mapping_for
from ..gateway import ExecutionGateway
from ..transaction import Transaction, run_in_transaction

T = TypeVar("T")


def on_one_connection(ex, fn: Callable[[Transaction], T]) -> T:
    """Helpers that need connection-local state (last_insert_rowid) run through here."""
    if isinstance(ex, ExecutionGateway):
        return run_in_transaction(ex.location, fn, factory=ex.factory)
    return fn(ex)


def insert_many(ex, entities: Iterable[Any]) -> int:
    """Bulk insert of mapped entities in one transaction over one cursor.

    Rows go in the order given, so referenced rows can precede the rows that
    point at them. Every entity type is resolved before anything is written.
    Returns the number of inserted rows.
    """
    items = list(entities)
    maps = {t: mapping_for(t) for t in {type(e) for e in items}}
    reqs = [maps[type(e)].insert_request(e) for e in items]
    if not reqs:
        return 0
    return on_one_connection(ex, lambda tx: execute_batch(tx, reqs, "insert_many"))
