from __future__ import annotations

# sqlite_gateway/schema.py
from dataclasses import dataclass
from typing import Iterable, List, Tuple


@dataclass(frozen=True)
class TableDef:
    name: str
    ddl: str
    depends_on: Tuple[str, ...] = ()


SCHEMA_VERSIONS = TableDef(
    "SchemaVersions",
    """
    CREATE TABLE IF NOT EXISTS SchemaVersions (
        Version TEXT PRIMARY KEY NOT NULL,
        AppliedOn DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
)

USERS = TableDef(
    "Users",
    """
    CREATE TABLE IF NOT EXISTS Users (
        Id INTEGER PRIMARY KEY AUTOINCREMENT,
        Name TEXT NOT NULL,
        Age INTEGER,
        Email TEXT,
        CreateTime DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
)

DEPARTMENTS = TableDef(
    "Departments",
    """
    CREATE TABLE IF NOT EXISTS Departments (
        Id INTEGER PRIMARY KEY AUTOINCREMENT,
        Name TEXT NOT NULL,
        Description TEXT,
        CreateTime DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
)

# 变体：用户-部门关系表（仅在 include_relations 时创建）
USER_DEPARTMENTS = TableDef(
    "UserDepartments",
    """
    CREATE TABLE IF NOT EXISTS UserDepartments (
        UserId INTEGER NOT NULL,
        DepartmentId INTEGER NOT NULL,
        JoinTime DATETIME DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (UserId, DepartmentId),
        FOREIGN KEY (UserId) REFERENCES Users(Id),
        FOREIGN KEY (DepartmentId) REFERENCES Departments(Id)
    )
    """,
    depends_on=("Users", "Departments"),
)

BASE_TABLES = (SCHEMA_VERSIONS, USERS, DEPARTMENTS)


def dependency_order(tables: Iterable[TableDef]) -> List[TableDef]:
    """Referenced tables first; declaration order kept among independent tables."""
    pending = list(tables)
    names = {t.name for t in pending}
    for t in pending:
        missing = [d for d in t.depends_on if d not in names]
        if missing:
            raise ValueError(f"table {t.name} references undefined table(s): {', '.join(missing)}")
    done: set[str] = set()
    ordered: List[TableDef] = []
    while pending:
        ready = [t for t in pending if all(d in done for d in t.depends_on)]
        if not ready:
            raise ValueError("cyclic table dependencies: " + ", ".join(t.name for t in pending))
        for t in ready:
            ordered.append(t)
            done.add(t.name)
        pending = [t for t in pending if t.name not in done]
    return ordered


def tables_for(include_relations: bool = False) -> List[TableDef]:
    tables = list(BASE_TABLES)
    if include_relations:
        tables.append(USER_DEPARTMENTS)
    return dependency_order(tables)


def seeded_table_names(include_relations: bool = False) -> List[str]:
    names = ["Users", "Departments"]
    if include_relations:
        names.append("UserDepartments")
    return names
