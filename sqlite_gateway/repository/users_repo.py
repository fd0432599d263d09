from __future__ import annotations

from typing import Optional

from ..entities import User, from_row, insert_request
from ..gateway import NO_ROWS
from . import on_one_connection


def list_all(ex) -> list[User]:
    res = ex.execute_query("SELECT Id, Name, Age, Email, CreateTime FROM Users ORDER BY Id")
    return [from_row(User, r) for r in res.to_dicts()]


def get_by_name(ex, name: str) -> Optional[User]:
    res = ex.execute_query(
        "SELECT Id, Name, Age, Email, CreateTime FROM Users WHERE Name = :Name ORDER BY Id LIMIT 1",
        {"Name": name},
    )
    rows = res.to_dicts()
    return from_row(User, rows[0]) if rows else None


def insert(ex, user: User) -> int:
    def _do(tx) -> int:
        tx.execute_non_query(insert_request(user))
        return int(tx.execute_scalar("SELECT last_insert_rowid()"))

    return on_one_connection(ex, _do)


def set_age(ex, name: str, age: int) -> int:
    return ex.execute_non_query("UPDATE Users SET Age = :Age WHERE Name = :Name", {"Age": age, "Name": name})


def increment_age(ex, name: str, delta: int = 1) -> int:
    return ex.execute_non_query(
        "UPDATE Users SET Age = Age + :Delta WHERE Name = :Name", {"Delta": delta, "Name": name}
    )


def count_all(ex) -> int:
    n = ex.execute_scalar("SELECT COUNT(1) FROM Users")
    return 0 if n is NO_ROWS else int(n)


def delete_by_name(ex, name: str) -> int:
    return ex.execute_non_query("DELETE FROM Users WHERE Name = :Name", {"Name": name})
