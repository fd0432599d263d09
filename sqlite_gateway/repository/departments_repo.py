from __future__ import annotations

from ..entities import Department, from_row, insert_request
from . import on_one_connection


def list_all(ex) -> list[Department]:
    res = ex.execute_query("SELECT Id, Name, Description, CreateTime FROM Departments ORDER BY Id")
    return [from_row(Department, r) for r in res.to_dicts()]


def insert(ex, dept: Department) -> int:
    def _do(tx) -> int:
        tx.execute_non_query(insert_request(dept))
        return int(tx.execute_scalar("SELECT last_insert_rowid()"))

    return on_one_connection(ex, _do)


def members(ex, department_name: str) -> list[str]:
    """仅在启用 UserDepartments 变体时可用。"""
    res = ex.execute_query(
        "SELECT u.Name FROM UserDepartments ud "
        "JOIN Users u ON u.Id = ud.UserId "
        "JOIN Departments d ON d.Id = ud.DepartmentId "
        "WHERE d.Name = :Name ORDER BY u.Id",
        {"Name": department_name},
    )
    return res.column("Name")
