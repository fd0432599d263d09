import pytest

from sqlite_gateway.entities import Department, User
from sqlite_gateway.errors import ConstraintViolation, TransactionAbort
from sqlite_gateway.gateway import ExecutionGateway
from sqlite_gateway.repository import insert_many, users_repo
from sqlite_gateway.transaction import run_in_transaction

from .conftest import count_rows


def test_insert_many_returns_row_count(initialized_db):
    gw = ExecutionGateway(initialized_db)
    rows = [
        Department(name="财务部", description="负责财务"),
        User(name="王五", age=28, email="wangwu@example.com"),
        User(name="赵六", age=35),
    ]
    assert insert_many(gw, rows) == 3
    assert count_rows(initialized_db, "Users") == 4
    assert count_rows(initialized_db, "Departments") == 3
    assert users_repo.get_by_name(gw, "赵六").age == 35
    assert insert_many(gw, []) == 0


def test_insert_many_is_all_or_nothing(initialized_db):
    gw = ExecutionGateway(initialized_db)
    rows = [User(name="王五", age=28), User(name=None, age=1), User(name="赵六", age=35)]
    with pytest.raises(TransactionAbort) as ei:
        insert_many(gw, rows)
    cause = ei.value.cause
    assert isinstance(cause, ConstraintViolation)
    assert cause.operation == "insert_many"
    assert cause.batch_index == 1
    assert count_rows(initialized_db, "Users") == 2


def test_insert_many_rejects_unmapped_types_before_writing(initialized_db):
    gw = ExecutionGateway(initialized_db)
    with pytest.raises(TypeError):
        insert_many(gw, [User(name="王五"), object()])
    assert count_rows(initialized_db, "Users") == 2


def test_insert_many_joins_an_open_transaction(initialized_db):
    def work(tx):
        insert_many(tx, [User(name="王五", age=28)])
        raise RuntimeError("undo")

    with pytest.raises(TransactionAbort):
        run_in_transaction(initialized_db, work)
    assert count_rows(initialized_db, "Users") == 2


def test_delete_by_name(initialized_db):
    gw = ExecutionGateway(initialized_db)
    assert users_repo.delete_by_name(gw, "李四") == 1
    assert users_repo.delete_by_name(gw, "李四") == 0
    assert [u.name for u in users_repo.list_all(gw)] == ["张三"]
