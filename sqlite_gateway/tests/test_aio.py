import asyncio
import threading

import pytest

from sqlite_gateway import initializer
from sqlite_gateway.aio import (
    AsyncExecutionGateway,
    initialize_async,
    reset_database_async,
    run_batch_async,
    run_in_transaction_async,
)
from sqlite_gateway.errors import TransactionAbort
from sqlite_gateway.gateway import NO_ROWS

from .conftest import count_rows


def test_async_gateway_calls(people_db):
    async def scenario():
        gw = AsyncExecutionGateway(people_db)
        n = await gw.execute_non_query("UPDATE People SET Age = 0 WHERE Name = :n", {"n": "a"})
        missing = await gw.execute_scalar("SELECT Age FROM People WHERE Name = 'zzz'")
        res = await gw.execute_query("SELECT Name FROM People ORDER BY Id")
        rows = await gw.fetch_rows("SELECT Name, Age FROM People ORDER BY Id")
        return n, missing, res, rows

    n, missing, res, rows = asyncio.run(scenario())
    assert n == 1
    assert missing is NO_ROWS
    assert res.column("Name") == ["a", "b", "c"]
    assert rows == [("a", 0), ("b", 2), ("c", 3)]


def test_async_transaction_and_batch(people_db):
    insert = "INSERT INTO People(Name, Age) VALUES (:Name, :Age)"

    async def scenario():
        await run_in_transaction_async(
            people_db, lambda tx: tx.execute_non_query(insert, {"Name": "d", "Age": 4})
        )
        with pytest.raises(TransactionAbort):
            await run_batch_async(people_db, [(insert, {"Name": "e", "Age": 5}), (insert, {"Name": "a", "Age": 1})])

    asyncio.run(scenario())
    assert count_rows(people_db, "People") == 4


def test_async_initialize(settings):
    report = asyncio.run(initialize_async(settings=settings))
    assert report.seeded is True
    assert count_rows(settings.db_path, "Users") == 2


def test_settings_are_loaded_off_the_event_loop(settings, monkeypatch):
    threads = []

    def fake_load_settings():
        threads.append(threading.get_ident())
        return settings

    monkeypatch.setattr(initializer, "load_settings", fake_load_settings)

    async def scenario():
        await initialize_async()
        return await reset_database_async()

    loop_thread = threading.get_ident()
    report = asyncio.run(scenario())
    assert report.created_file is True
    assert len(threads) == 2
    assert loop_thread not in threads
